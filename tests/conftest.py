from __future__ import annotations

import pytest

from objstore.app.services.storage_service import StorageService
from objstore.common import config
from objstore.common.config import get_settings
from objstore.infra.observability.instrumentation import Instrumenter
from tests.services.mock_storage import TEST_BUCKET, MockRemoteStore


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep a developer's .env and cached settings out of the tests."""
    monkeypatch.setattr(config, "ENV_FILE", tmp_path / ".env")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def mock_store():
    return MockRemoteStore()


@pytest.fixture()
def events():
    return []


@pytest.fixture()
def instrumenter(events):
    instrumenter = Instrumenter(enable_metrics=False)
    instrumenter.subscribe(lambda name, payload: events.append((name, dict(payload))))
    return instrumenter


@pytest.fixture()
def storage_service(mock_store, instrumenter):
    return StorageService(
        bucket=TEST_BUCKET,
        store=mock_store,
        instrumenter=instrumenter,
    )
