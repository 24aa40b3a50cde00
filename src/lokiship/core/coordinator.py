"""
Flush and transport coordination.

The coordinator turns accumulated batches into push requests, keeps every
outstanding request in an in-flight set until it settles, and sequences
shutdown:

1. disarm the flush timer
2. flush whatever is still buffered
3. wait for in-flight requests OR the shutdown deadline, whichever is first
4. cancel everything still outstanding and close the transport

Delivery is best-effort with a single attempt. Failures are reported
through diagnostics and never raised; cancellations caused by shutdown are
expected and stay quiet.

Must only be used from the owning event loop's thread.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from functools import partial
from typing import Any

from ..metrics.metrics import MetricsCollector
from ..transport.base import DeliveryOutcome, Transport, count_entries
from . import diagnostics
from .accumulator import BatchAccumulator
from .config import LokiConfig
from .entry import LogEntry

# How long cancelled requests get to unwind before shutdown completes
CANCEL_GRACE_SECONDS = 0.5


class ShipperState(str, Enum):
    ACTIVE = "active"
    DRAINING = "draining"
    TERMINATED = "terminated"


class FlushCoordinator:
    """Owns the batch, the in-flight set and the shutdown sequence."""

    def __init__(
        self,
        config: LokiConfig,
        transport: Transport | None,
        *,
        loop: asyncio.AbstractEventLoop,
        metrics: MetricsCollector | None = None,
        cancel_grace_seconds: float = CANCEL_GRACE_SECONDS,
    ) -> None:
        self._config = config
        self._transport = transport
        self._loop = loop
        self._metrics = metrics or MetricsCollector(enabled=False)
        self._cancel_grace_seconds = cancel_grace_seconds
        self._accumulator = BatchAccumulator(
            loop=loop,
            labels=config.labels,
            flush=self.flush,
            batch=config.batch,
            batch_size=config.batch_size,
            batch_timeout_seconds=config.batch_timeout_seconds,
        )
        self._in_flight: set[asyncio.Task[DeliveryOutcome]] = set()
        self._state = ShipperState.ACTIVE
        self._cancelled = False
        self._shutdown_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ShipperState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._transport is not None and self._config.enabled

    @property
    def pending(self) -> int:
        return self._accumulator.pending

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def accumulator(self) -> BatchAccumulator:
        return self._accumulator

    def submit(self, entry: LogEntry) -> None:
        if not self.enabled:
            return
        if self._state is not ShipperState.ACTIVE:
            self._metrics.record_entries_dropped(1)
            return
        self._metrics.record_entry_submitted()
        self._accumulator.submit(entry)

    def flush(self) -> None:
        records = self._accumulator.take()
        if records is None:
            return
        self.dispatch({"streams": records})

    def dispatch(self, payload: dict[str, Any]) -> None:
        entries = count_entries(payload)
        if self._transport is None or self._cancelled:
            self._metrics.record_entries_dropped(entries)
            return
        task = self._loop.create_task(self._transport.send(payload))
        # Tracked before control returns to the loop, so even a request
        # that settles on its first step cannot escape the set
        self._in_flight.add(task)
        task.add_done_callback(partial(self._settle, entries=entries))

    def _settle(self, task: asyncio.Task[DeliveryOutcome], *, entries: int) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            self._metrics.record_request_cancelled(batch_size=entries)
            diagnostics.debug(
                "loki-transport", "push request cancelled", entries=entries
            )
            return
        exc = task.exception()
        if exc is not None:
            self._metrics.record_request_failed(batch_size=entries)
            diagnostics.warn(
                "loki-transport",
                "exception while delivering log batch",
                endpoint=self._config.url,
                entries=entries,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return
        outcome = task.result()
        if outcome.ok:
            self._metrics.record_request_sent(batch_size=entries)
            return
        self._metrics.record_request_failed(batch_size=entries)
        diagnostics.warn(
            "loki-transport",
            "failed to deliver log batch",
            endpoint=self._config.url,
            entries=entries,
            status_code=outcome.status_code,
            error=outcome.error,
        )

    def cancel_all(self) -> int:
        """Broadcast cancellation to every outstanding request.

        After this call no further requests are dispatched.
        """
        self._cancelled = True
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        return len(tasks)

    async def shutdown(self) -> None:
        """Drain and terminate. Repeated calls share the first drain."""
        if self._shutdown_task is None:
            self._shutdown_task = self._loop.create_task(self._drain())
        await asyncio.shield(self._shutdown_task)

    async def _drain(self) -> None:
        self._state = ShipperState.DRAINING
        self._accumulator.cancel_timer()
        self.flush()

        waiting = set(self._in_flight)
        if waiting:
            _, not_done = await asyncio.wait(
                waiting, timeout=self._config.shutdown_timeout_seconds
            )
            if not_done:
                diagnostics.debug(
                    "coordinator",
                    "shutdown deadline reached; cancelling requests",
                    outstanding=len(not_done),
                    timeout_seconds=self._config.shutdown_timeout_seconds,
                )

        self.cancel_all()
        unwinding = set(self._in_flight)
        if unwinding:
            await asyncio.wait(unwinding, timeout=self._cancel_grace_seconds)

        if self._transport is not None:
            try:
                await self._transport.aclose()
            except Exception as exc:
                diagnostics.warn(
                    "loki-transport",
                    "transport close failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        self._state = ShipperState.TERMINATED
