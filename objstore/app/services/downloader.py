from __future__ import annotations

import tempfile
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Callable, Iterator, TypeVar

from objstore.domain.checksums import ChecksumAlgorithm
from objstore.infra.storage.client import IntegrityError

if TYPE_CHECKING:
    from objstore.app.services.storage_service import StorageService

T = TypeVar("T")


class Downloader:
    """Downloads objects into scoped temporary files and verifies them."""

    def __init__(self, service: "StorageService") -> None:
        self._service = service

    @property
    def service(self) -> "StorageService":
        return self._service

    @contextmanager
    def open(
        self,
        key: str,
        *,
        checksum: str | None = None,
        checksum_algorithm: ChecksumAlgorithm | str | None = None,
        verify: bool = True,
        name: str = "objstore-",
        tmpdir: str | None = None,
    ) -> Iterator[IO[bytes]]:
        """Yield a verified, rewound local copy of ``key``.

        The temporary file is deleted when the block exits, whether it
        returns, fails verification, or raises.

        Raises:
            UnsupportedChecksumError: If ``checksum_algorithm`` is not
                supported. Raised before anything is downloaded.
            ObjectNotFoundError: If ``key`` does not exist.
            IntegrityError: If ``verify`` is set, a checksum is given and the
                downloaded bytes do not match it.
        """
        algorithm = self._service.resolve_algorithm(checksum_algorithm)
        with tempfile.NamedTemporaryFile(
            mode="w+b", prefix=name, dir=tmpdir
        ) as file:
            self._download(key, file)
            if verify and checksum:
                self._verify_integrity_of(file, checksum=checksum, algorithm=algorithm)
            yield file

    def open_with(
        self,
        key: str,
        use: Callable[[IO[bytes]], T],
        *,
        checksum: str | None = None,
        checksum_algorithm: ChecksumAlgorithm | str | None = None,
        verify: bool = True,
        name: str = "objstore-",
        tmpdir: str | None = None,
    ) -> T:
        """Callback form of :meth:`open`; returns what ``use`` returns."""
        with self.open(
            key,
            checksum=checksum,
            checksum_algorithm=checksum_algorithm,
            verify=verify,
            name=name,
            tmpdir=tmpdir,
        ) as file:
            return use(file)

    def _download(self, key: str, file: IO[bytes]) -> None:
        self._service.download(key, file.write)
        file.flush()
        file.seek(0)

    def _verify_integrity_of(
        self,
        file: IO[bytes],
        *,
        checksum: str,
        algorithm: ChecksumAlgorithm,
    ) -> None:
        actual = self._service.compute_checksum(file, algorithm)
        if actual != checksum:
            raise IntegrityError(
                f"Checksum mismatch for downloaded object: expected {checksum}, got {actual}"
            )
