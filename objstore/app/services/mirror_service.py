"""Mirrors blobs from a primary storage service to secondary ones.

Writes fan out to every service, reads are served by the primary. The
``mirror`` operation is meant to be driven by an external job runner, which
should drop the job on ObjectNotFoundError (the source vanished) and retry
with backoff on IntegrityError.
"""

from __future__ import annotations

import logging
from typing import IO, Callable, Iterable, Mapping, Sequence

from objstore.app.services.downloader import Downloader
from objstore.app.services.storage_service import (
    Payload,
    StorageService,
    UploadOptions,
)
from objstore.common.config import Settings, get_settings
from objstore.domain.checksums import ChecksumAlgorithm
from objstore.domain.upload_plan import UploadPlan
from objstore.infra.observability.instrumentation import Instrumenter
from objstore.infra.storage.client import RemoteStore

logger = logging.getLogger("objstore.mirror")


class MirrorService:
    def __init__(
        self,
        primary: StorageService,
        mirrors: Sequence[StorageService],
        *,
        instrumenter: Instrumenter | None = None,
    ) -> None:
        self._primary = primary
        self._mirrors = list(mirrors)
        self._downloader = Downloader(primary)
        self._instrumenter = instrumenter or primary.instrumenter

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        store: RemoteStore | None = None,
    ) -> "MirrorService":
        """Primary bucket from STORAGE_BUCKET, mirrors from STORAGE_MIRROR_BUCKETS."""
        settings = settings or get_settings()
        primary = StorageService.from_settings(settings, store=store)
        mirrors = [
            StorageService.from_settings(
                settings,
                bucket=bucket,
                store=store,
                instrumenter=primary.instrumenter,
            )
            for bucket in settings.STORAGE_MIRROR_BUCKETS
        ]
        return cls(primary, mirrors)

    @property
    def primary(self) -> StorageService:
        return self._primary

    @property
    def mirrors(self) -> list[StorageService]:
        return list(self._mirrors)

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
        """Upload to the primary, then to every mirror.

        File payloads are rewound before each upload.
        """
        options = UploadOptions(
            checksum=checksum,
            content_type=content_type,
            filename=filename,
            disposition=disposition,
            custom_metadata=dict(custom_metadata or {}),
        )
        services = [self._primary, *self._mirrors]
        plan = self._upload_to(services[0], key, payload, options)
        for mirror in services[1:]:
            if not isinstance(payload, (bytes, bytearray)):
                payload.seek(0)
            self._upload_to(mirror, key, payload, options)
        return plan

    @staticmethod
    def _upload_to(
        service: StorageService, key: str, payload: Payload, options: UploadOptions
    ) -> UploadPlan:
        return service.upload(
            key,
            payload,
            checksum=options.checksum,
            content_type=options.content_type,
            filename=options.filename,
            disposition=options.disposition,
            custom_metadata=options.custom_metadata,
        )

    def download(
        self, key: str, on_chunk: Callable[[bytes], object] | None = None
    ) -> bytes | None:
        return self._primary.download(key, on_chunk)

    def exists(self, key: str) -> bool:
        return self._primary.exists(key)

    def delete(self, key: str) -> None:
        self._each(lambda service: service.delete(key))

    def delete_prefixed(self, prefix: str) -> None:
        self._each(lambda service: service.delete_prefixed(prefix))

    def mirror(
        self,
        key: str,
        *,
        checksum: str,
        checksum_algorithm: ChecksumAlgorithm | str | None = None,
    ) -> list[str]:
        """Copy ``key`` from the primary to every mirror that lacks it.

        Returns:
            Buckets the object was copied to.

        Raises:
            ObjectNotFoundError: If the primary no longer has ``key``.
            IntegrityError: If the primary copy does not match ``checksum``.
        """
        algorithm = self._primary.resolve_algorithm(checksum_algorithm)
        with self._instrumenter.instrument("mirror", key=key) as payload:
            missing = [mirror for mirror in self._mirrors if not mirror.exists(key)]
            copied: list[str] = []
            if missing:
                with self._downloader.open(
                    key, checksum=checksum, checksum_algorithm=algorithm
                ) as file:
                    for mirror in missing:
                        file.seek(0)
                        mirror_checksum = self._upload_checksum(
                            mirror, file, checksum, algorithm
                        )
                        mirror.upload(key, file, checksum=mirror_checksum)
                        copied.append(mirror.bucket)
            payload["mirrored_to"] = copied
            if copied:
                logger.info(
                    "mirrored key=%s buckets=%s",
                    key,
                    ",".join(copied),
                    extra={"extra": {"key": key, "buckets": copied}},
                )
            return copied

    def _upload_checksum(
        self,
        mirror: StorageService,
        file: IO[bytes],
        checksum: str,
        algorithm: ChecksumAlgorithm,
    ) -> str:
        # upload() negotiates in the mirror's default algorithm
        if mirror.default_digest_algorithm is algorithm:
            return checksum
        return mirror.compute_checksum(file)

    def _each(self, action: Callable[[StorageService], object]) -> None:
        services: Iterable[StorageService] = [self._primary, *self._mirrors]
        for service in services:
            action(service)
