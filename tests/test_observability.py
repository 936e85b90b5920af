import logging

import pytest
from prometheus_client import REGISTRY

from objstore.infra.observability.instrumentation import Instrumenter


def _sample(operation: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "storage_operations_total", {"operation": operation, "outcome": outcome}
    )
    return value or 0.0


def test_success_records_metrics_and_notifies():
    instrumenter = Instrumenter()
    received = []
    instrumenter.subscribe(lambda name, payload: received.append((name, payload)))
    before = _sample("test_success_op", "ok")

    with instrumenter.instrument("test_success_op", key="k") as payload:
        payload["extra_field"] = 1

    assert _sample("test_success_op", "ok") == before + 1
    assert received == [
        ("test_success_op", {"key": "k", "service": "S3", "extra_field": 1})
    ]
    assert (
        REGISTRY.get_sample_value(
            "storage_operation_duration_seconds_count", {"operation": "test_success_op"}
        )
        >= 1
    )


def test_failure_records_error_and_reraises():
    instrumenter = Instrumenter()
    received = []
    instrumenter.subscribe(lambda name, payload: received.append(payload))
    before = _sample("test_failure_op", "error")

    with pytest.raises(ValueError, match="bad"):
        with instrumenter.instrument("test_failure_op", key="k"):
            raise ValueError("bad")

    assert _sample("test_failure_op", "error") == before + 1
    assert received[0]["exception"] == "ValueError('bad')"


def test_metrics_can_be_disabled():
    instrumenter = Instrumenter(enable_metrics=False)

    with instrumenter.instrument("test_disabled_op", key="k"):
        pass

    assert _sample("test_disabled_op", "ok") == 0.0


def test_unsubscribe():
    instrumenter = Instrumenter(enable_metrics=False)
    received = []
    unsubscribe = instrumenter.subscribe(lambda name, payload: received.append(name))

    unsubscribe()
    with instrumenter.instrument("op"):
        pass

    assert received == []


def test_log_line_masks_urls(caplog):
    instrumenter = Instrumenter(enable_metrics=False)

    with caplog.at_level(logging.INFO, logger="objstore.storage"):
        with instrumenter.instrument("url", key="k") as payload:
            payload["url"] = "https://bucket/k?X-Amz-Signature=secret"

    record = caplog.records[-1]
    assert record.name == "objstore.storage"
    assert record.levelno == logging.INFO
    assert "secret" not in record.getMessage()
    assert "url" not in record.extra
    assert record.extra["operation"] == "url"
    assert record.extra["outcome"] == "ok"


def test_failure_logs_warning(caplog):
    instrumenter = Instrumenter(enable_metrics=False)

    with caplog.at_level(logging.INFO, logger="objstore.storage"):
        with pytest.raises(RuntimeError):
            with instrumenter.instrument("delete", key="k"):
                raise RuntimeError("down")

    assert caplog.records[-1].levelno == logging.WARNING
