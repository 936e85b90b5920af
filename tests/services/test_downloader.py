"""Tests for Downloader."""

from __future__ import annotations

import base64
import hashlib
import os

import pytest

from objstore.app.services.downloader import Downloader
from objstore.app.services.storage_service import StorageService
from objstore.infra.storage.client import (
    IntegrityError,
    ObjectNotFoundError,
    UnsupportedChecksumError,
)
from tests.services.mock_storage import TEST_BUCKET

DATA = bytes(range(256)) * 40


def _md5(data: bytes) -> str:
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def _sha1(data: bytes) -> str:
    return base64.b64encode(hashlib.sha1(data).digest()).decode("ascii")


@pytest.fixture()
def service(mock_store):
    service = StorageService(bucket=TEST_BUCKET, store=mock_store, chunk_size=1000)
    service.upload("blob", DATA)
    return service


@pytest.fixture()
def downloader(service):
    return Downloader(service)


def test_yields_verified_rewound_copy(downloader, tmp_path):
    with downloader.open("blob", checksum=_md5(DATA), tmpdir=str(tmp_path)) as file:
        path = file.name
        assert os.path.exists(path)
        assert file.tell() == 0
        assert file.read() == DATA

    assert not os.path.exists(path)
    assert os.listdir(tmp_path) == []


def test_uses_requested_algorithm(downloader, tmp_path):
    with downloader.open(
        "blob", checksum=_sha1(DATA), checksum_algorithm="SHA1", tmpdir=str(tmp_path)
    ) as file:
        assert file.read() == DATA


def test_checksum_mismatch_raises_and_cleans_up(downloader, tmp_path):
    calls = []

    with pytest.raises(IntegrityError):
        with downloader.open(
            "blob", checksum=_md5(b"something else"), tmpdir=str(tmp_path)
        ) as file:
            calls.append(file)

    assert calls == []
    assert os.listdir(tmp_path) == []


def test_skips_verification_when_disabled(downloader, tmp_path):
    with downloader.open(
        "blob", checksum=_md5(b"wrong"), verify=False, tmpdir=str(tmp_path)
    ) as file:
        assert file.read() == DATA


def test_without_checksum_nothing_to_verify(downloader, tmp_path):
    with downloader.open("blob", tmpdir=str(tmp_path)) as file:
        assert file.read() == DATA


def test_exception_in_block_cleans_up(downloader, tmp_path):
    with pytest.raises(RuntimeError, match="caller failed"):
        with downloader.open("blob", checksum=_md5(DATA), tmpdir=str(tmp_path)):
            raise RuntimeError("caller failed")

    assert os.listdir(tmp_path) == []


def test_missing_object_cleans_up(downloader, tmp_path):
    with pytest.raises(ObjectNotFoundError):
        with downloader.open("missing", tmpdir=str(tmp_path)):
            pass

    assert os.listdir(tmp_path) == []


def test_unsupported_algorithm(downloader, mock_store, tmp_path):
    with pytest.raises(UnsupportedChecksumError):
        with downloader.open(
            "blob", checksum="x", checksum_algorithm="SHA512", tmpdir=str(tmp_path)
        ):
            pass

    assert mock_store.range_requests == []
    assert os.listdir(tmp_path) == []


def test_unsupported_algorithm_rejected_even_without_verification(
    downloader, mock_store, tmp_path
):
    with pytest.raises(UnsupportedChecksumError):
        downloader.open_with(
            "blob",
            lambda file: None,
            checksum_algorithm="CRC16",
            verify=False,
            tmpdir=str(tmp_path),
        )

    assert mock_store.range_requests == []


def test_uses_name_prefix(downloader, tmp_path):
    with downloader.open("blob", name="verify-", tmpdir=str(tmp_path)) as file:
        assert os.path.basename(file.name).startswith("verify-")


def test_open_with_callback(downloader, tmp_path):
    seen_paths = []

    def use(file):
        seen_paths.append(file.name)
        return hashlib.sha256(file.read()).hexdigest()

    result = downloader.open_with(
        "blob", use, checksum=_md5(DATA), tmpdir=str(tmp_path)
    )

    assert result == hashlib.sha256(DATA).hexdigest()
    assert not os.path.exists(seen_paths[0])


def test_open_with_uses_name_prefix(downloader, tmp_path):
    basename = downloader.open_with(
        "blob",
        lambda file: os.path.basename(file.name),
        name="mirror-",
        tmpdir=str(tmp_path),
    )

    assert basename.startswith("mirror-")


def test_open_with_callback_not_invoked_on_mismatch(downloader, tmp_path):
    calls = []

    with pytest.raises(IntegrityError):
        downloader.open_with(
            "blob", calls.append, checksum=_md5(b"nope"), tmpdir=str(tmp_path)
        )

    assert calls == []
    assert os.listdir(tmp_path) == []
