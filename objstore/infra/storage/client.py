"""Remote store protocol, data types and error taxonomy.

This module defines the abstract interface the storage service needs from a
bucket-style object store: whole and ranged reads, single-shot puts,
multipart upload sessions, deletion, and presigned URLs. Backend-native
exceptions never cross this boundary; implementations translate them into
the errors defined here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object key does not exist."""


class IntegrityError(StorageError):
    """Raised when a payload does not match its expected checksum."""


class UnsupportedChecksumError(StorageError):
    """Raised when a checksum algorithm is outside the supported set."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None


@dataclass(frozen=True, slots=True)
class ByteRange:
    """A byte range of an object, ``start`` inclusive.

    ``end`` is exclusive unless ``exclude_end`` is False, mirroring the two
    flavours callers tend to carry around.
    """

    start: int
    end: int
    exclude_end: bool = True

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must not be negative")
        if self.last < self.start:
            raise ValueError("byte range is empty")

    @classmethod
    def coerce(cls, value: "ByteRange | range") -> "ByteRange":
        if isinstance(value, ByteRange):
            return value
        if isinstance(value, range):
            if value.step != 1:
                raise ValueError("byte ranges must be contiguous")
            return cls(start=value.start, end=value.stop)
        raise TypeError(f"Unsupported byte range: {value!r}")

    @property
    def last(self) -> int:
        """Index of the last byte included in the range."""
        return self.end - 1 if self.exclude_end else self.end

    @property
    def length(self) -> int:
        return self.last - self.start + 1

    def to_header(self) -> str:
        return f"bytes={self.start}-{self.last}"


class UploadSession(Protocol):
    """Writable sink for a streaming (multipart) upload.

    Used as a context manager: leaving the block normally finalizes the
    object, leaving it with an exception abandons the upload.
    """

    def write(self, data: bytes) -> int: ...

    def __enter__(self) -> "UploadSession": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


class RemoteStore(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here and raise
    ObjectNotFoundError / IntegrityError for the two translated failure
    cases; any other backend failure surfaces as StorageError.
    """

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: Any,
        content_type: str | None = None,
        content_disposition: str | None = None,
        metadata: Mapping[str, str] | None = None,
        extra_params: Mapping[str, Any] | None = None,
    ) -> None:
        """Upload a complete object in a single request.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Bytes or a readable binary file object.
            content_type: MIME type of the object.
            content_disposition: Content-Disposition stored with the object.
            metadata: Custom metadata to attach to the object.
            extra_params: Backend request parameters (checksums, ACL, ...).

        Raises:
            IntegrityError: If the backend rejects the payload's checksum.
            StorageError: If the operation fails for any other reason.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download a whole object.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def get_object_range(
        self, *, bucket: str, object_key: str, byte_range: ByteRange
    ) -> bytes:
        """Download a single byte range of an object.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.

        Returns:
            ObjectHead with size, ETag, and content type.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def open_upload_session(
        self,
        *,
        bucket: str,
        object_key: str,
        part_size: int,
        content_type: str | None = None,
        content_disposition: str | None = None,
        metadata: Mapping[str, str] | None = None,
        extra_params: Mapping[str, Any] | None = None,
    ) -> UploadSession:
        """Open a multipart upload session writing parts of ``part_size``.

        Raises:
            StorageError: If the session cannot be created.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage. Missing objects are not an error.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def delete_prefixed(self, *, bucket: str, prefix: str) -> int:
        """Delete every object whose key starts with ``prefix``.

        Returns:
            The number of deleted objects.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def presign(
        self,
        *,
        bucket: str,
        object_key: str,
        method: str,
        expires_in: int,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Generate a presigned URL for ``method`` (``get`` or ``put``).

        Raises:
            StorageError: If URL generation fails.
        """
        ...

    def public_url(self, *, bucket: str, object_key: str) -> str:
        """Return the stable, unsigned URL of an object in a public bucket."""
        ...
