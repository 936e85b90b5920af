"""Storage service for uploading, reading and signing remote objects.

This module provides the application service layer over a remote object
store: upload strategy selection, checksum negotiation, chunked reads,
object composition, and presigned URL generation for direct uploads and
downloads.
"""

from __future__ import annotations

import io
import os
import shutil
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Iterable, Mapping, Union

from objstore.common.config import (
    DEFAULT_MULTIPART_THRESHOLD_BYTES,
    DEFAULT_PRESIGN_EXPIRES_SECONDS,
    Settings,
    get_settings,
)
from objstore.domain import checksums
from objstore.domain.checksums import ChecksumAlgorithm
from objstore.domain.content_disposition import (
    DISPOSITION_TYPES,
    content_disposition_with,
)
from objstore.domain.upload_plan import (
    MAXIMUM_UPLOAD_PARTS_COUNT,
    MINIMUM_UPLOAD_PART_SIZE,
    UploadPlan,
    plan_upload,
)
from objstore.infra.observability.instrumentation import Instrumenter
from objstore.infra.storage.client import (
    ByteRange,
    ObjectNotFoundError,
    RemoteStore,
    StorageError,
)
from objstore.infra.storage.s3_client import S3RemoteStore
from objstore.infra.storage.streaming import DEFAULT_CHUNK_SIZE, ChunkedStreamer

Payload = Union[bytes, bytearray, IO[bytes]]

# Buffer size when copying a payload into a multipart session
COPY_BUFFER_SIZE = 1024 * 1024


class StorageBackendNotConfiguredError(StorageError):
    """Raised when the storage backend is not properly configured."""


def _validate_metadata(metadata: Mapping[str, str]) -> None:
    for key, value in metadata.items():
        if not isinstance(key, str) or not key:
            raise ValueError("custom metadata keys must be non-empty strings")
        if not isinstance(value, str):
            raise ValueError(f"custom metadata value for {key!r} must be a string")


def _validate_disposition(disposition: str | None) -> None:
    if disposition is not None and disposition not in DISPOSITION_TYPES:
        raise ValueError(
            f"disposition must be one of {', '.join(DISPOSITION_TYPES)}"
        )


@dataclass(frozen=True, slots=True)
class UploadOptions:
    """Per-call options recognised by upload and compose."""

    checksum: str | None = None
    content_type: str | None = None
    filename: str | None = None
    disposition: str | None = None
    custom_metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _validate_disposition(self.disposition)
        _validate_metadata(self.custom_metadata)

    @property
    def content_disposition(self) -> str | None:
        if self.disposition and self.filename:
            return content_disposition_with(self.filename, self.disposition)
        return None


@dataclass(frozen=True, slots=True)
class DirectUploadOptions:
    """Constraints a browser-originated upload must satisfy."""

    content_type: str
    checksum: str
    checksum_algorithm: ChecksumAlgorithm
    content_length: int | None = None
    filename: str | None = None
    disposition: str | None = None
    custom_metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.content_length is not None and self.content_length < 0:
            raise ValueError("content_length must not be negative")
        _validate_disposition(self.disposition)
        _validate_metadata(self.custom_metadata)


def _payload_size(payload: Payload) -> int:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return len(payload)
    position = payload.tell()
    end = payload.seek(0, os.SEEK_END)
    payload.seek(position)
    return end - position


class StorageService:
    """Application service for storing blobs in a bucket-style remote store.

    Holds only construction-time configuration; every operation is an
    independent request/response exchange and is safe to call concurrently
    for distinct keys.
    """

    def __init__(
        self,
        *,
        bucket: str,
        store: RemoteStore,
        public: bool = False,
        default_digest_algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.MD5,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD_BYTES,
        upload_options: Mapping[str, Any] | None = None,
        presign_expires_in: int = DEFAULT_PRESIGN_EXPIRES_SECONDS,
        min_part_size: int = MINIMUM_UPLOAD_PART_SIZE,
        max_part_count: int = MAXIMUM_UPLOAD_PARTS_COUNT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        instrumenter: Instrumenter | None = None,
    ) -> None:
        if not bucket:
            raise StorageBackendNotConfiguredError("bucket is required")
        if multipart_threshold <= 0:
            raise ValueError("multipart_threshold must be positive")
        if presign_expires_in <= 0:
            raise ValueError("presign_expires_in must be positive")
        self._bucket = bucket
        self._store = store
        self._public = public
        self._default_digest_algorithm = checksums.validate(default_digest_algorithm)
        self._multipart_threshold = int(multipart_threshold)
        self._presign_expires_in = int(presign_expires_in)
        self._min_part_size = int(min_part_size)
        self._max_part_count = int(max_part_count)
        self._upload_options = dict(upload_options or {})
        if public:
            self._upload_options["ACL"] = "public-read"
        self._streamer = ChunkedStreamer(store, bucket=bucket, chunk_size=chunk_size)
        self._instrumenter = instrumenter or Instrumenter()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        bucket: str | None = None,
        store: RemoteStore | None = None,
        instrumenter: Instrumenter | None = None,
    ) -> "StorageService":
        """Build a service from configuration, defaulting to the S3 store."""
        settings = settings or get_settings()
        bucket = bucket or settings.STORAGE_BUCKET
        if not bucket:
            raise StorageBackendNotConfiguredError("STORAGE_BUCKET is required")
        return cls(
            bucket=bucket,
            store=store or S3RemoteStore(settings=settings),
            public=settings.STORAGE_PUBLIC,
            default_digest_algorithm=settings.STORAGE_DEFAULT_DIGEST_ALGORITHM,
            multipart_threshold=settings.STORAGE_MULTIPART_THRESHOLD_BYTES,
            upload_options=settings.STORAGE_UPLOAD_OPTIONS,
            presign_expires_in=settings.STORAGE_PRESIGN_EXPIRES_SECONDS,
            instrumenter=instrumenter
            or Instrumenter(enable_metrics=settings.ENABLE_METRICS),
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def public(self) -> bool:
        return self._public

    @property
    def default_digest_algorithm(self) -> ChecksumAlgorithm:
        return self._default_digest_algorithm

    @property
    def multipart_threshold(self) -> int:
        return self._multipart_threshold

    @property
    def presign_expires_in(self) -> int:
        return self._presign_expires_in

    @property
    def upload_options(self) -> dict[str, Any]:
        return dict(self._upload_options)

    @property
    def instrumenter(self) -> Instrumenter:
        return self._instrumenter

    def plan_for(self, payload_size: int) -> UploadPlan:
        return plan_upload(
            payload_size,
            threshold=self._multipart_threshold,
            min_part_size=self._min_part_size,
            max_part_count=self._max_part_count,
        )

    def upload(
        self,
        key: str,
        payload: Payload,
        *,
        checksum: str | None = None,
        content_type: str | None = None,
        filename: str | None = None,
        disposition: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> UploadPlan:
        """Store ``payload`` at ``key``, overwriting any existing object.

        Args:
            key: Object key.
            payload: Bytes or a readable binary file positioned at the start
                of the content.
            checksum: Expected digest in the default algorithm; the backend
                rejects the upload when it does not match.
            content_type: MIME type stored with the object.
            filename: Filename used for the stored Content-Disposition.
            disposition: ``inline`` or ``attachment``.
            custom_metadata: String metadata stored with the object.

        Returns:
            The UploadPlan that was executed.

        Raises:
            IntegrityError: If the backend reports a checksum mismatch.
            ValueError: If an option is invalid.
        """
        options = UploadOptions(
            checksum=checksum,
            content_type=content_type,
            filename=filename,
            disposition=disposition,
            custom_metadata=dict(custom_metadata or {}),
        )
        with self._instrumenter.instrument(
            "upload", key=key, checksum=checksum
        ) as payload_info:
            plan = self.plan_for(_payload_size(payload))
            payload_info["strategy"] = plan.strategy.value
            if plan.is_multipart and plan.part_size:
                self._upload_with_multipart(key, payload, options, plan.part_size)
            else:
                self._upload_with_single_part(key, payload, options)
            return plan

    def _upload_with_single_part(
        self, key: str, payload: Payload, options: UploadOptions
    ) -> None:
        extra_params = {
            **checksums.request_params(
                options.checksum, self._default_digest_algorithm
            ),
            **self._upload_options,
        }
        self._store.put_object(
            bucket=self._bucket,
            object_key=key,
            body=bytes(payload) if isinstance(payload, bytearray) else payload,
            content_type=options.content_type,
            content_disposition=options.content_disposition,
            metadata=options.custom_metadata,
            extra_params=extra_params,
        )

    def _upload_with_multipart(
        self, key: str, payload: Payload, options: UploadOptions, part_size: int
    ) -> None:
        source = (
            io.BytesIO(payload)
            if isinstance(payload, (bytes, bytearray))
            else payload
        )
        with self._store.open_upload_session(
            bucket=self._bucket,
            object_key=key,
            part_size=part_size,
            content_type=options.content_type,
            content_disposition=options.content_disposition,
            metadata=options.custom_metadata,
            extra_params=self._upload_options,
        ) as out:
            shutil.copyfileobj(source, out, COPY_BUFFER_SIZE)

    def download(
        self, key: str, on_chunk: Callable[[bytes], object] | None = None
    ) -> bytes | None:
        """Return the whole object, or stream it to ``on_chunk`` when given.

        Raises:
            ObjectNotFoundError: If ``key`` does not exist.
        """
        if on_chunk is not None:
            with self._instrumenter.instrument("streaming_download", key=key):
                self._streamer.stream(key, on_chunk)
            return None
        with self._instrumenter.instrument("download", key=key):
            return self._store.get_object(bucket=self._bucket, object_key=key)

    def iter_chunks(self, key: str) -> Iterable[bytes]:
        """Lazy chunked read of ``key``; raises ObjectNotFoundError on first pull."""
        return self._streamer.iter_chunks(key)

    def download_chunk(self, key: str, byte_range: ByteRange | range) -> bytes:
        """Fetch exactly one byte range of ``key``.

        Raises:
            ObjectNotFoundError: If ``key`` does not exist.
        """
        byte_range = ByteRange.coerce(byte_range)
        with self._instrumenter.instrument(
            "download_chunk", key=key, range=byte_range.to_header()
        ):
            return self._store.get_object_range(
                bucket=self._bucket, object_key=key, byte_range=byte_range
            )

    def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing object is not an error."""
        with self._instrumenter.instrument("delete", key=key):
            self._store.delete_object(bucket=self._bucket, object_key=key)

    def delete_prefixed(self, prefix: str) -> int:
        with self._instrumenter.instrument("delete_prefixed", prefix=prefix) as payload:
            deleted = self._store.delete_prefixed(bucket=self._bucket, prefix=prefix)
            payload["deleted"] = deleted
            return deleted

    def exists(self, key: str) -> bool:
        with self._instrumenter.instrument("exist", key=key) as payload:
            try:
                self._store.head_object(bucket=self._bucket, object_key=key)
            except ObjectNotFoundError:
                answer = False
            else:
                answer = True
            payload["exist"] = answer
            return answer

    def url(
        self,
        key: str,
        *,
        filename: str,
        expires_in: int | None = None,
        disposition: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """URL for reading ``key``: signed for private buckets, stable for public ones.

        Signed URLs expire after ``expires_in`` seconds, or the service's
        ``presign_expires_in`` when omitted.
        """
        expires = self._expiry(expires_in)
        with self._instrumenter.instrument("url", key=key) as payload:
            if self._public:
                generated_url = self._public_url(key)
            else:
                generated_url = self._private_url(
                    key,
                    expires_in=expires,
                    filename=filename,
                    disposition=disposition,
                    content_type=content_type,
                )
            payload["url"] = generated_url
            return generated_url

    def url_for_direct_upload(
        self,
        key: str,
        *,
        content_type: str,
        content_length: int,
        checksum: str,
        checksum_algorithm: ChecksumAlgorithm | str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
        expires_in: int | None = None,
    ) -> str:
        """Presigned PUT URL accepting exactly the described object.

        Raises:
            UnsupportedChecksumError: If ``checksum_algorithm`` is not supported.
        """
        options = DirectUploadOptions(
            content_type=content_type,
            checksum=checksum,
            checksum_algorithm=self.resolve_algorithm(checksum_algorithm),
            content_length=content_length,
            custom_metadata=dict(custom_metadata or {}),
        )
        expires = self._expiry(expires_in)
        with self._instrumenter.instrument("url", key=key) as payload:
            params: dict[str, Any] = {
                "ContentType": options.content_type,
                "ContentLength": int(options.content_length or 0),
                **checksums.request_params(options.checksum, options.checksum_algorithm),
                **self._upload_options,
            }
            if options.custom_metadata:
                params["Metadata"] = dict(options.custom_metadata)
            generated_url = self._store.presign(
                bucket=self._bucket,
                object_key=key,
                method="put",
                expires_in=expires,
                params=params,
            )
            payload["url"] = generated_url
            return generated_url

    def headers_for_direct_upload(
        self,
        key: str,
        *,
        content_type: str,
        checksum: str,
        checksum_algorithm: ChecksumAlgorithm | str | None = None,
        filename: str | None = None,
        disposition: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Headers a direct-upload client must send with the signed PUT."""
        options = DirectUploadOptions(
            content_type=content_type,
            checksum=checksum,
            checksum_algorithm=self.resolve_algorithm(checksum_algorithm),
            filename=filename,
            disposition=disposition,
            custom_metadata=dict(custom_metadata or {}),
        )
        headers = {
            "Content-Type": options.content_type,
            **checksums.http_headers(options.checksum, options.checksum_algorithm),
        }
        if options.filename:
            headers["Content-Disposition"] = content_disposition_with(
                options.filename, options.disposition
            )
        headers.update(
            {f"x-amz-meta-{k}": v for k, v in options.custom_metadata.items()}
        )
        return headers

    def compose(
        self,
        source_keys: Iterable[str],
        destination_key: str,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        disposition: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Write the ordered concatenation of ``source_keys`` to ``destination_key``.

        Sources are streamed chunk by chunk into one multipart session. Not
        atomic with respect to sources changing while the copy runs.

        Raises:
            ObjectNotFoundError: If a source key does not exist.
        """
        source_keys = list(source_keys)
        options = UploadOptions(
            content_type=content_type,
            filename=filename,
            disposition=disposition,
            custom_metadata=dict(custom_metadata or {}),
        )
        with self._instrumenter.instrument(
            "compose", key=destination_key, sources=len(source_keys)
        ):
            with self._store.open_upload_session(
                bucket=self._bucket,
                object_key=destination_key,
                part_size=self._min_part_size,
                content_type=options.content_type,
                content_disposition=options.content_disposition,
                metadata=options.custom_metadata,
                extra_params=self._upload_options,
            ) as out:
                for source_key in source_keys:
                    self._streamer.stream(source_key, out.write)

    def compute_checksum(
        self,
        source: bytes | IO[bytes],
        algorithm: ChecksumAlgorithm | str | None = None,
    ) -> str:
        return checksums.compute_checksum(source, self.resolve_algorithm(algorithm))

    def resolve_algorithm(
        self, algorithm: ChecksumAlgorithm | str | None
    ) -> ChecksumAlgorithm:
        """Validate ``algorithm``, falling back to the default digest algorithm."""
        if algorithm is None:
            return self._default_digest_algorithm
        return checksums.validate(algorithm)

    def _expiry(self, expires_in: int | None) -> int:
        if expires_in is None:
            return self._presign_expires_in
        if expires_in <= 0:
            raise ValueError("expires_in must be positive")
        return int(expires_in)

    def _private_url(
        self,
        key: str,
        *,
        expires_in: int,
        filename: str,
        disposition: str | None,
        content_type: str | None,
    ) -> str:
        params: dict[str, Any] = {
            "ResponseContentDisposition": content_disposition_with(
                filename, disposition
            ),
        }
        if content_type:
            params["ResponseContentType"] = content_type
        return self._store.presign(
            bucket=self._bucket,
            object_key=key,
            method="get",
            expires_in=int(expires_in),
            params=params,
        )

    def _public_url(self, key: str) -> str:
        return self._store.public_url(bucket=self._bucket, object_key=key)
