"""
The shipper: the public, thread-safe face of the batching engine.

A `LokiShipper` owns exactly one accumulator/coordinator pair, one
transport and the event loop they run on. The loop is either supplied by
the caller, the loop running when the shipper starts, or a private loop on
a daemon thread (thread mode) when no loop is running. All engine state is
mutated on that loop; calls from other threads are handed over with
``call_soon_threadsafe``.

Logging calls (`submit`, `log` and the level helpers) never block and never
raise. The only waiting operation is the drain behind `shutdown`,
`stop_and_drain` and `close`.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import types
from datetime import datetime
from typing import Any, Callable, Mapping

from ..metrics.metrics import MetricsCollector
from ..transport.base import Transport
from ..transport.http_client import LokiHttpTransport
from . import diagnostics
from .config import LokiConfig, parse_config
from .coordinator import CANCEL_GRACE_SECONDS, FlushCoordinator, ShipperState
from .entry import LogEntry
from .shutdown import register_shipper, unregister_shipper

DEFAULT_CATEGORY = "default"


class LokiShipper:
    """Batches log entries and pushes them to Loki in the background.

    Delivery is best-effort. Failed pushes are dropped and counted in
    `metrics`; they are only written to stderr when
    ``LOKISHIP_INTERNAL_LOGGING_ENABLED`` is true. A missing url is always
    reported.

    Example:
        shipper = LokiShipper(url="http://localhost:3100/loki/api/v1/push",
                              labels={"app": "billing"})
        shipper.info("invoice created", category="billing.invoices")
        shipper.close()
    """

    def __init__(
        self,
        config: LokiConfig | Mapping[str, Any] | None = None,
        *,
        transport: Transport | None = None,
        metrics: MetricsCollector | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        **overrides: Any,
    ) -> None:
        self._config = parse_config(config, **overrides)
        self._metrics = metrics or MetricsCollector(enabled=False)
        self._transport_override = transport
        self._loop = loop
        self._owns_loop = False
        self._loop_thread: threading.Thread | None = None
        self._coordinator: FlushCoordinator | None = None
        self._shutdown_future: concurrent.futures.Future[None] | None = None
        self._closed = False
        self._lock = threading.Lock()

        if not self._config.enabled:
            diagnostics.error(
                "config", "url is not configured; no logs will be sent"
            )
        elif self._config.has_conflicting_auth:
            diagnostics.warn(
                "config",
                "both token and username/password configured; using bearer token",
            )

    # ------------------------------------------------------------------ state

    @property
    def config(self) -> LokiConfig:
        return self._config

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def state(self) -> ShipperState:
        if self._coordinator is not None:
            return self._coordinator.state
        return ShipperState.TERMINATED if self._closed else ShipperState.ACTIVE

    @property
    def pending(self) -> int:
        return self._coordinator.pending if self._coordinator is not None else 0

    @property
    def in_flight(self) -> int:
        return self._coordinator.in_flight if self._coordinator is not None else 0

    # -------------------------------------------------------------- lifecycle

    def start(self) -> None:
        """Bind to an event loop and build the engine. Idempotent."""
        with self._lock:
            if self._coordinator is not None or self._closed:
                return
            loop = self._loop
            if loop is None:
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    loop = self._start_loop_thread()
            self._loop = loop
            self._coordinator = FlushCoordinator(
                self._config,
                self._build_transport(),
                loop=loop,
                metrics=self._metrics,
            )
        if self._owns_loop:
            register_shipper(self)

    def _build_transport(self) -> Transport | None:
        if not self._config.enabled:
            return None
        if self._transport_override is not None:
            return self._transport_override
        return LokiHttpTransport(self._config)

    def _start_loop_thread(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            try:
                loop.run_forever()
            finally:
                try:
                    loop.run_until_complete(loop.shutdown_asyncgens())
                finally:
                    loop.close()

        thread = threading.Thread(target=_run, name="lokiship-loop", daemon=True)
        thread.start()
        ready.wait()
        self._loop_thread = thread
        self._owns_loop = True
        return loop

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _call_on_loop(self, fn: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None:
            return
        if self._on_loop_thread():
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)

    # ---------------------------------------------------------------- logging

    def submit(self, entry: LogEntry) -> None:
        """Queue one entry for shipping. Never blocks, never raises."""
        if not self._config.enabled or self._closed:
            return
        try:
            self.start()
            coordinator = self._coordinator
            if coordinator is None:
                return
            self._call_on_loop(coordinator.submit, entry)
        except Exception as exc:
            diagnostics.warn(
                "shipper",
                "failed to submit log entry",
                error_type=type(exc).__name__,
                error=str(exc),
            )

    def log(
        self,
        level: str,
        message: str,
        *,
        category: str = DEFAULT_CATEGORY,
        timestamp: datetime | None = None,
    ) -> None:
        if timestamp is None:
            entry = LogEntry.now(category, level, message)
        else:
            entry = LogEntry(category, level, timestamp, message)
        self.submit(entry)

    def debug(self, message: str, *, category: str = DEFAULT_CATEGORY) -> None:
        self.log("DEBUG", message, category=category)

    def info(self, message: str, *, category: str = DEFAULT_CATEGORY) -> None:
        self.log("INFO", message, category=category)

    def warning(self, message: str, *, category: str = DEFAULT_CATEGORY) -> None:
        self.log("WARNING", message, category=category)

    def error(self, message: str, *, category: str = DEFAULT_CATEGORY) -> None:
        self.log("ERROR", message, category=category)

    def critical(self, message: str, *, category: str = DEFAULT_CATEGORY) -> None:
        self.log("CRITICAL", message, category=category)

    def flush(self) -> None:
        """Send whatever is buffered now instead of waiting for a trigger."""
        coordinator = self._coordinator
        if coordinator is None or self._closed:
            return
        try:
            self._call_on_loop(coordinator.flush)
        except Exception as exc:
            diagnostics.warn(
                "shipper",
                "failed to schedule flush",
                error_type=type(exc).__name__,
                error=str(exc),
            )

    # --------------------------------------------------------------- shutdown

    def shutdown(
        self, on_complete: Callable[[], None] | None = None
    ) -> concurrent.futures.Future[None]:
        """Start the drain and return a future that completes when it ends.

        ``on_complete`` is called exactly once when the drain is over,
        whether every request was delivered or the deadline forced
        cancellation. Calling shutdown again returns the same future.
        """
        with self._lock:
            if self._shutdown_future is None:
                self._closed = True
                self._shutdown_future = self._begin_shutdown()
            future = self._shutdown_future
        if on_complete is not None:
            future.add_done_callback(lambda _f: on_complete())
        return future

    def _begin_shutdown(self) -> concurrent.futures.Future[None]:
        coordinator = self._coordinator
        loop = self._loop
        if coordinator is None or loop is None or loop.is_closed():
            done: concurrent.futures.Future[None] = concurrent.futures.Future()
            done.set_result(None)
            return done
        future = asyncio.run_coroutine_threadsafe(coordinator.shutdown(), loop)
        if self._owns_loop:
            future.add_done_callback(lambda _f: loop.call_soon_threadsafe(loop.stop))
        return future

    def _join_loop_thread(self, timeout: float | None) -> None:
        thread = self._loop_thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if not thread.is_alive():
            self._loop_thread = None
            self._loop = None

    def _default_close_timeout(self) -> float:
        return self._config.shutdown_timeout_seconds + CANCEL_GRACE_SECONDS + 1.0

    async def stop_and_drain(self) -> None:
        """Awaitable shutdown; usable from the owning loop or any other."""
        await asyncio.wrap_future(self.shutdown())
        if self._loop_thread is not None:
            await asyncio.to_thread(self._join_loop_thread, 2.0)
        unregister_shipper(self)

    def close(self, timeout: float | None = None) -> None:
        """Blocking shutdown for synchronous code.

        Raises RuntimeError when called on the owning event loop's thread,
        where blocking would deadlock the drain.
        """
        if self._on_loop_thread():
            raise RuntimeError(
                "close() cannot block the shipper's event loop; "
                "use 'await shipper.stop_and_drain()' instead"
            )
        if timeout is None:
            timeout = self._default_close_timeout()
        future = self.shutdown()
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            diagnostics.warn(
                "shipper", "close timed out waiting for drain", timeout=timeout
            )
        self._join_loop_thread(2.0)
        unregister_shipper(self)

    def __enter__(self) -> LokiShipper:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> LokiShipper:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        await self.stop_and_drain()
