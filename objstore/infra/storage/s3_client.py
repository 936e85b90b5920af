"""S3-compatible remote store implementation.

This module provides an S3-compatible remote store that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from objstore.infra.storage.client import (
    ByteRange,
    CompletedPart,
    IntegrityError,
    MultipartUpload,
    ObjectHead,
    ObjectNotFoundError,
    StorageError,
)

if TYPE_CHECKING:
    from objstore.common.config import Settings

logger = logging.getLogger(__name__)

# S3 caps DeleteObjects at 1000 keys per request
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_INVALID_CHECKSUM_HEADER = re.compile(r"Value for x-amz-checksum-.* header is invalid\.")
_PRESIGN_METHODS = {"get": "get_object", "put": "put_object"}


def _translate_error(exc: Exception, message: str) -> StorageError:
    """Map a boto3 failure onto the storage error taxonomy."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        detail = str(error.get("Message", ""))
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(f"{message}: object not found")
        if code == "BadDigest":
            return IntegrityError(f"{message}: {detail or 'digest mismatch'}")
        if code == "InvalidRequest" and _INVALID_CHECKSUM_HEADER.search(detail):
            return IntegrityError(f"{message}: {detail}")
    return StorageError(f"{message}: {exc}")


def _object_params(
    *,
    content_type: str | None,
    content_disposition: str | None,
    metadata: Mapping[str, str] | None,
    extra_params: Mapping[str, Any] | None,
) -> dict[str, Any]:
    params: dict[str, Any] = dict(extra_params or {})
    if content_type:
        params["ContentType"] = content_type
    if content_disposition:
        params["ContentDisposition"] = content_disposition
    if metadata:
        params["Metadata"] = {str(k): str(v) for k, v in metadata.items()}
    return params


class S3UploadSession:
    """Streams written bytes to S3 as a multipart upload.

    Holds at most one part in memory. The upload is completed when the
    ``with`` block exits cleanly and aborted when it raises.
    """

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        object_key: str,
        part_size: int,
        params: Mapping[str, Any],
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._client = client
        self._part_size = part_size
        self._params = dict(params)
        self._buffer = bytearray()
        self._parts: list[CompletedPart] = []
        self._upload: MultipartUpload | None = None
        self._bucket = bucket
        self._object_key = object_key

    @property
    def parts(self) -> list[CompletedPart]:
        return list(self._parts)

    def __enter__(self) -> "S3UploadSession":
        try:
            response = self._client.create_multipart_upload(
                Bucket=self._bucket, Key=self._object_key, **self._params
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to create multipart upload") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")
        self._upload = MultipartUpload(
            upload_id=str(upload_id), bucket=self._bucket, object_key=self._object_key
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self._abort_after_failure()
            return
        try:
            self._flush(final=True)
            self._complete()
        except BaseException:
            self._abort_after_failure()
            raise

    def write(self, data: bytes) -> int:
        self._open_upload()
        self._buffer.extend(data)
        self._flush(final=False)
        return len(data)

    def abort(self) -> None:
        if self._upload is None:
            return
        upload, self._upload = self._upload, None
        try:
            self._client.abort_multipart_upload(
                Bucket=upload.bucket, Key=upload.object_key, UploadId=upload.upload_id
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to abort multipart upload") from exc

    def _abort_after_failure(self) -> None:
        # the failure that triggered the abort is the one callers must see
        upload = self._upload
        try:
            self.abort()
        except StorageError as exc:
            logger.warning(
                "Failed to abort multipart upload key=%s upload_id=%s: %s",
                self._object_key,
                upload.upload_id if upload else None,
                exc,
            )

    def _open_upload(self) -> MultipartUpload:
        if self._upload is None:
            raise StorageError("Upload session is not open")
        return self._upload

    def _flush(self, *, final: bool) -> None:
        while len(self._buffer) >= self._part_size:
            chunk = bytes(self._buffer[: self._part_size])
            del self._buffer[: self._part_size]
            self._upload_part(chunk)
        # S3 needs at least one part, even for an empty object
        if final and (self._buffer or not self._parts):
            chunk = bytes(self._buffer)
            self._buffer.clear()
            self._upload_part(chunk)

    def _upload_part(self, chunk: bytes) -> None:
        upload = self._open_upload()
        part_number = len(self._parts) + 1
        try:
            response = self._client.upload_part(
                Bucket=upload.bucket,
                Key=upload.object_key,
                UploadId=upload.upload_id,
                PartNumber=part_number,
                Body=chunk,
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to upload part") from exc
        self._parts.append(
            CompletedPart(part_number=part_number, etag=str(response.get("ETag", "")))
        )

    def _complete(self) -> None:
        upload = self._open_upload()
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(self._parts, key=lambda p: p.part_number)
            ]
        }
        try:
            self._client.complete_multipart_upload(
                Bucket=upload.bucket,
                Key=upload.object_key,
                UploadId=upload.upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to complete multipart upload") from exc
        self._upload = None


class S3RemoteStore:
    """S3-compatible remote store.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

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
        """Upload a complete object in a single request."""
        params = _object_params(
            content_type=content_type,
            content_disposition=content_disposition,
            metadata=metadata,
            extra_params=extra_params,
        )
        try:
            self._client.put_object(Bucket=bucket, Key=object_key, Body=body, **params)
        except Exception as exc:
            raise _translate_error(exc, "Failed to upload object") from exc

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download a whole object."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            return bytes(response["Body"].read())
        except Exception as exc:
            raise _translate_error(exc, "Failed to download object") from exc

    def get_object_range(
        self, *, bucket: str, object_key: str, byte_range: ByteRange
    ) -> bytes:
        """Download a single byte range of an object."""
        try:
            response = self._client.get_object(
                Bucket=bucket, Key=object_key, Range=byte_range.to_header()
            )
            return bytes(response["Body"].read())
        except Exception as exc:
            raise _translate_error(exc, "Failed to download object range") from exc

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _translate_error(exc, "Failed to get object metadata") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

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
    ) -> S3UploadSession:
        """Prepare a multipart upload; the session starts on ``__enter__``."""
        params = _object_params(
            content_type=content_type,
            content_disposition=content_disposition,
            metadata=metadata,
            extra_params=extra_params,
        )
        return S3UploadSession(
            self._client,
            bucket=bucket,
            object_key=object_key,
            part_size=part_size,
            params=params,
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            translated = _translate_error(exc, "Failed to delete object")
            if isinstance(translated, ObjectNotFoundError):
                return
            raise translated from exc

    def delete_prefixed(self, *, bucket: str, prefix: str) -> int:
        """Delete every object under ``prefix`` in batches."""
        deleted = 0
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            batch: list[dict[str, str]] = []
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    batch.append({"Key": item["Key"]})
                    if len(batch) == DELETE_BATCH_SIZE:
                        deleted += self._delete_batch(bucket, batch)
                        batch = []
            if batch:
                deleted += self._delete_batch(bucket, batch)
        except StorageError:
            raise
        except Exception as exc:
            raise _translate_error(exc, "Failed to delete prefixed objects") from exc
        return deleted

    def _delete_batch(self, bucket: str, batch: list[dict[str, str]]) -> int:
        response = self._client.delete_objects(
            Bucket=bucket, Delete={"Objects": batch, "Quiet": True}
        )
        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            raise StorageError(
                f"Failed to delete {len(errors)} object(s), "
                f"first: {first.get('Key')} ({first.get('Code')})"
            )
        return len(batch)

    def presign(
        self,
        *,
        bucket: str,
        object_key: str,
        method: str,
        expires_in: int,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Generate a presigned URL for a GET or PUT request."""
        client_method = _PRESIGN_METHODS.get(method.lower())
        if client_method is None:
            raise StorageError(f"Unsupported presign method: {method}")
        try:
            url = self._client.generate_presigned_url(
                client_method,
                Params={"Bucket": bucket, "Key": object_key, **dict(params or {})},
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate presigned URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)

    def public_url(self, *, bucket: str, object_key: str) -> str:
        """Build the unsigned URL of an object in a public-read bucket."""
        endpoint = (
            self._settings.S3_ENDPOINT_URL or self._client.meta.endpoint_url
        ).rstrip("/")
        path = quote(object_key, safe="/")
        if self._settings.S3_ADDRESSING_STYLE == "virtual":
            scheme, _, host = endpoint.partition("://")
            return f"{scheme}://{bucket}.{host}/{path}"
        return f"{endpoint}/{bucket}/{path}"
