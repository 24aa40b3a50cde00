"""
Delivery metrics for lokiship.

Implements a small set of Prometheus-compatible counters and a histogram
describing what the shipper accepted, sent, failed and abandoned.

Design goals:
- Zero global state; each shipper owns its collector
- Recording is synchronous so it can run inside event-loop callbacks
- Safe no-op exporters when metrics are disabled, while still tracking
  basic in-memory counters for tests and introspection
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class DeliveryMetrics:
    """Captured runtime counters for quick assertions in tests."""

    entries_submitted: int = 0
    entries_dropped: int = 0
    requests_sent: int = 0
    requests_failed: int = 0
    requests_cancelled: int = 0


class MetricsCollector:
    """Shipper-scoped metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = DeliveryMetrics()

        self._c_submitted: Any | None = None
        self._c_dropped: Any | None = None
        self._c_requests: Any | None = None
        self._h_batch_size: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication across shippers
            self._registry = CollectorRegistry()
            self._c_submitted = Counter(
                "lokiship_entries_submitted_total",
                "Total number of log entries accepted for shipping",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "lokiship_entries_dropped_total",
                "Total number of log entries that were not delivered",
                registry=self._registry,
            )
            self._c_requests = Counter(
                "lokiship_requests_total",
                "Push requests by outcome",
                ["outcome"],
                registry=self._registry,
            )
            self._h_batch_size = Histogram(
                "lokiship_batch_size",
                "Number of entries per push request",
                buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def record_entry_submitted(self) -> None:
        with self._lock:
            self._state.entries_submitted += 1
        if self._c_submitted is not None:
            self._c_submitted.inc()

    def record_entries_dropped(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._state.entries_dropped += count
        if self._c_dropped is not None:
            self._c_dropped.inc(count)

    def record_request_sent(self, *, batch_size: int) -> None:
        with self._lock:
            self._state.requests_sent += 1
        if self._c_requests is not None:
            self._c_requests.labels(outcome="sent").inc()
        if self._h_batch_size is not None:
            self._h_batch_size.observe(batch_size)

    def record_request_failed(self, *, batch_size: int) -> None:
        with self._lock:
            self._state.requests_failed += 1
        if self._c_requests is not None:
            self._c_requests.labels(outcome="failed").inc()
        self.record_entries_dropped(batch_size)

    def record_request_cancelled(self, *, batch_size: int) -> None:
        with self._lock:
            self._state.requests_cancelled += 1
        if self._c_requests is not None:
            self._c_requests.labels(outcome="cancelled").inc()
        self.record_entries_dropped(batch_size)

    def snapshot(self) -> DeliveryMetrics:
        # Lightweight copy without exposing internals
        with self._lock:
            return replace(self._state)
