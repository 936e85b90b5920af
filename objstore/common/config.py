from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

ENV_FILE = Path(".env")

DEFAULT_MULTIPART_THRESHOLD_BYTES = 100 * 1024 * 1024
DEFAULT_PRESIGN_EXPIRES_SECONDS = 300
SUPPORTED_ADDRESSING_STYLES: tuple[str, ...] = ("path", "virtual", "auto")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_json_object(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError("STORAGE_UPLOAD_OPTIONS must be a JSON object.")
    return parsed


@dataclass
class Settings:
    STORAGE_BUCKET: str | None = None
    STORAGE_PUBLIC: bool = False
    STORAGE_DEFAULT_DIGEST_ALGORITHM: str = "MD5"
    STORAGE_MULTIPART_THRESHOLD_BYTES: int = DEFAULT_MULTIPART_THRESHOLD_BYTES
    STORAGE_UPLOAD_OPTIONS: dict[str, Any] = field(default_factory=dict)
    STORAGE_PRESIGN_EXPIRES_SECONDS: int = DEFAULT_PRESIGN_EXPIRES_SECONDS
    STORAGE_TMPDIR: str | None = None
    STORAGE_MIRROR_BUCKETS: list[str] = field(default_factory=list)
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    ENABLE_METRICS: bool = True

    def __post_init__(self) -> None:
        if self.STORAGE_MULTIPART_THRESHOLD_BYTES <= 0:
            raise ValueError("STORAGE_MULTIPART_THRESHOLD_BYTES must be positive.")
        if self.STORAGE_PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("STORAGE_PRESIGN_EXPIRES_SECONDS must be positive.")
        style = (self.S3_ADDRESSING_STYLE or "path").strip().lower()
        if style not in SUPPORTED_ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(SUPPORTED_ADDRESSING_STYLES)}."
            )
        self.S3_ADDRESSING_STYLE = style

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORAGE_BUCKET=os.environ.get("STORAGE_BUCKET"),
            STORAGE_PUBLIC=_as_bool(
                os.environ.get("STORAGE_PUBLIC"), cls.STORAGE_PUBLIC
            ),
            STORAGE_DEFAULT_DIGEST_ALGORITHM=os.environ.get(
                "STORAGE_DEFAULT_DIGEST_ALGORITHM",
                cls.STORAGE_DEFAULT_DIGEST_ALGORITHM,
            ),
            STORAGE_MULTIPART_THRESHOLD_BYTES=int(
                os.environ.get(
                    "STORAGE_MULTIPART_THRESHOLD_BYTES",
                    cls.STORAGE_MULTIPART_THRESHOLD_BYTES,
                )
            ),
            STORAGE_UPLOAD_OPTIONS=_as_json_object(
                os.environ.get("STORAGE_UPLOAD_OPTIONS")
            ),
            STORAGE_PRESIGN_EXPIRES_SECONDS=int(
                os.environ.get(
                    "STORAGE_PRESIGN_EXPIRES_SECONDS",
                    cls.STORAGE_PRESIGN_EXPIRES_SECONDS,
                )
            ),
            STORAGE_TMPDIR=os.environ.get("STORAGE_TMPDIR") or None,
            STORAGE_MIRROR_BUCKETS=_as_list(os.environ.get("STORAGE_MIRROR_BUCKETS")),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_REGION=os.environ.get("S3_REGION") or None,
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
