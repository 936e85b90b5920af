"""Checksum algorithms and their S3 wire representation.

S3 accepts MD5 digests through the legacy ``Content-MD5`` header and every
other algorithm through the ``x-amz-checksum-<alg>`` family. Digests travel
base64-encoded, big-endian, for all algorithms.
"""

from __future__ import annotations

import base64
import hashlib
import io
import zlib
from enum import Enum
from typing import IO, Any, Callable, Protocol

from objstore.infra.storage.client import UnsupportedChecksumError

READ_CHUNK_SIZE = 5 * 1024 * 1024


class ChecksumAlgorithm(str, Enum):
    CRC32 = "CRC32"
    CRC32C = "CRC32C"
    MD5 = "MD5"
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    CRC64NVME = "CRC64NVME"


SUPPORTED_CHECKSUM_ALGORITHMS: frozenset[ChecksumAlgorithm] = frozenset(
    ChecksumAlgorithm
)


def validate(algorithm: ChecksumAlgorithm | str) -> ChecksumAlgorithm:
    """Return the algorithm as a ChecksumAlgorithm, case-insensitively.

    Raises:
        UnsupportedChecksumError: If the name is not a supported algorithm.
    """
    if isinstance(algorithm, ChecksumAlgorithm):
        return algorithm
    name = str(algorithm or "").strip().upper()
    try:
        return ChecksumAlgorithm(name)
    except ValueError:
        raise UnsupportedChecksumError(
            f"Unsupported checksum algorithm: {algorithm!r}. "
            f"Expected one of {', '.join(a.value for a in ChecksumAlgorithm)}."
        ) from None


def request_params(
    checksum: str | None, algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.MD5
) -> dict[str, str]:
    """boto3 request parameters carrying ``checksum`` for a put or presign."""
    if not checksum:
        return {}
    algorithm = validate(algorithm)
    if algorithm is ChecksumAlgorithm.MD5:
        return {"ContentMD5": checksum}
    return {
        "ChecksumAlgorithm": algorithm.value,
        f"Checksum{algorithm.value}": checksum,
    }


def http_headers(
    checksum: str | None, algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.MD5
) -> dict[str, str]:
    """HTTP headers a direct-upload client must send along with ``checksum``."""
    if not checksum:
        return {}
    algorithm = validate(algorithm)
    if algorithm is ChecksumAlgorithm.MD5:
        return {"Content-MD5": checksum}
    return {f"x-amz-checksum-{algorithm.value.lower()}": checksum}


class _Digest(Protocol):
    def update(self, data: bytes) -> Any: ...

    def digest(self) -> bytes: ...


class _CrcDigest:
    """Adapts an incremental ``crc(data, previous)`` function to the hashlib API."""

    def __init__(self, func: Callable[[bytes, int], int], width: int) -> None:
        self._func = func
        self._width = width
        self._value = 0

    def update(self, data: bytes) -> None:
        self._value = self._func(data, self._value)

    def digest(self) -> bytes:
        return self._value.to_bytes(self._width, "big")


def _crt_checksums() -> Any:
    try:
        from awscrt import checksums
    except ImportError as exc:
        raise UnsupportedChecksumError(
            "awscrt is required for CRC32C and CRC64NVME checksums. "
            "Install with: pip install awscrt"
        ) from exc
    return checksums


def _new_digest(algorithm: ChecksumAlgorithm) -> _Digest:
    if algorithm is ChecksumAlgorithm.MD5:
        return hashlib.md5()
    if algorithm is ChecksumAlgorithm.SHA1:
        return hashlib.sha1()
    if algorithm is ChecksumAlgorithm.SHA256:
        return hashlib.sha256()
    if algorithm is ChecksumAlgorithm.CRC32:
        return _CrcDigest(zlib.crc32, 4)
    if algorithm is ChecksumAlgorithm.CRC32C:
        return _CrcDigest(_crt_checksums().crc32c, 4)
    return _CrcDigest(_crt_checksums().crc64nvme, 8)


def compute_checksum(
    source: bytes | IO[bytes], algorithm: ChecksumAlgorithm | str
) -> str:
    """Base64 digest of ``source``, read in bounded chunks.

    File objects are read from their current position to the end and then
    rewound to where they started.
    """
    digest = _new_digest(validate(algorithm))
    stream = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    start = stream.tell()
    try:
        for chunk in iter(lambda: stream.read(READ_CHUNK_SIZE), b""):
            digest.update(chunk)
    finally:
        stream.seek(start)
    return base64.b64encode(digest.digest()).decode("ascii")
