"""Object storage abstraction layer.

This module provides a protocol-based abstraction for remote object stores,
with an S3-compatible implementation and a chunked reader built on top.
"""

from .client import (
    ByteRange,
    CompletedPart,
    IntegrityError,
    MultipartUpload,
    ObjectHead,
    ObjectNotFoundError,
    RemoteStore,
    StorageError,
    UnsupportedChecksumError,
    UploadSession,
)
from .streaming import DEFAULT_CHUNK_SIZE, ChunkedStreamer

__all__ = [
    "ByteRange",
    "ChunkedStreamer",
    "CompletedPart",
    "DEFAULT_CHUNK_SIZE",
    "IntegrityError",
    "MultipartUpload",
    "ObjectHead",
    "ObjectNotFoundError",
    "RemoteStore",
    "StorageError",
    "UnsupportedChecksumError",
    "UploadSession",
]
