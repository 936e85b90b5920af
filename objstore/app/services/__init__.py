from .downloader import Downloader
from .mirror_service import MirrorService
from .storage_service import (
    DirectUploadOptions,
    StorageBackendNotConfiguredError,
    StorageService,
    UploadOptions,
)

__all__ = [
    "DirectUploadOptions",
    "Downloader",
    "MirrorService",
    "StorageBackendNotConfiguredError",
    "StorageService",
    "UploadOptions",
]
