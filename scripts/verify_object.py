#!/usr/bin/env python3
"""Download an object and verify it against an expected checksum.

Usage:
  .venv/bin/python scripts/verify_object.py uploads/report.pdf --checksum 1B2M2Y8AsgTpgAmY7PhCfg==
  .venv/bin/python scripts/verify_object.py uploads/report.pdf --checksum ... --algorithm SHA256

Reads bucket and S3 connection settings from the environment (or .env).
Exits with status 1 when the object is missing or fails verification.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

from objstore.app.services.downloader import Downloader
from objstore.app.services.storage_service import StorageService
from objstore.common.config import get_settings
from objstore.common.logging import setup_logging
from objstore.infra.storage.client import IntegrityError, ObjectNotFoundError

logger = logging.getLogger("objstore.cli")


def verify_object(
    service: StorageService,
    key: str,
    *,
    checksum: str,
    algorithm: str | None = None,
    tmpdir: str | None = None,
) -> int:
    """Return the verified object's size in bytes."""
    downloader = Downloader(service)
    with downloader.open(
        key, checksum=checksum, checksum_algorithm=algorithm, tmpdir=tmpdir
    ) as file:
        return os.fstat(file.fileno()).st_size


def main(argv: Sequence[str] | None = None, *, service: StorageService | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify a stored object's checksum")
    parser.add_argument("key", help="Object key to download")
    parser.add_argument("--checksum", required=True, help="Expected base64 digest")
    parser.add_argument(
        "--algorithm",
        default=None,
        help="Checksum algorithm (default: STORAGE_DEFAULT_DIGEST_ALGORITHM)",
    )
    parser.add_argument("--bucket", default=None, help="Override STORAGE_BUCKET")
    args = parser.parse_args(argv)

    setup_logging()
    settings = get_settings()
    service = service or StorageService.from_settings(settings, bucket=args.bucket)
    try:
        size = verify_object(
            service,
            args.key,
            checksum=args.checksum,
            algorithm=args.algorithm,
            tmpdir=settings.STORAGE_TMPDIR,
        )
    except ObjectNotFoundError:
        logger.error("Object not found: %s", args.key)
        return 1
    except IntegrityError as exc:
        logger.error("Integrity check failed for %s: %s", args.key, exc)
        return 1
    print(f"OK {args.key} ({size} bytes)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
