"""Named event hooks fired around storage operations.

Every instrumented operation records Prometheus metrics, writes one
structured log line and then notifies subscribers with ``(name, payload)``.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from objstore.infra.observability.metrics import STORAGE_LATENCY, STORAGE_OPERATIONS

Subscriber = Callable[[str, dict[str, Any]], None]

logger = logging.getLogger("objstore.storage")


class Instrumenter:
    # Signed URLs embed credentials; keep them out of log lines
    SENSITIVE_KEYS = {"url", "headers"}

    def __init__(self, *, service: str = "S3", enable_metrics: bool = True) -> None:
        self._service = service
        self._enable_metrics = enable_metrics
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber`` and return a callable that removes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @contextmanager
    def instrument(self, name: str, **payload: Any) -> Iterator[dict[str, Any]]:
        """Wrap one operation; the yielded payload may be enriched in place."""
        payload["service"] = self._service
        start = time.perf_counter()
        try:
            yield payload
        except Exception as exc:
            payload["exception"] = repr(exc)
            self._finish(name, payload, start, outcome="error")
            raise
        self._finish(name, payload, start, outcome="ok")

    def _finish(
        self, name: str, payload: dict[str, Any], start: float, *, outcome: str
    ) -> None:
        elapsed = time.perf_counter() - start
        if self._enable_metrics:
            STORAGE_OPERATIONS.labels(name, outcome).inc()
            STORAGE_LATENCY.labels(name).observe(elapsed)

        duration_ms = round(elapsed * 1000, 3)
        extra_payload = {
            k: v for k, v in payload.items() if k not in self.SENSITIVE_KEYS
        }
        extra_payload.update(
            {"operation": name, "outcome": outcome, "duration_ms": duration_ms}
        )
        logger.log(
            logging.INFO if outcome == "ok" else logging.WARNING,
            "storage_op operation=%s key=%s outcome=%s duration_ms=%.3f",
            name,
            payload.get("key", payload.get("prefix", "-")),
            outcome,
            duration_ms,
            extra={"extra": extra_payload},
        )

        for subscriber in list(self._subscribers):
            subscriber(name, payload)
