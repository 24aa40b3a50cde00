"""
Batch accumulation and the eager-flush policy.

The accumulator buffers formatted stream records and decides, on every
submit, whether the batch must go out now or whether a debounce timer
should be (re)armed. It never talks to the network itself: flushing is
delegated to the callback supplied by the coordinator.

Must only be used from the owning event loop's thread.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from .entry import LogEntry, format_stream


class BatchAccumulator:
    """Buffers records and applies the size/age flush triggers.

    Size and age are independent eager triggers checked on every submit;
    satisfying either one flushes immediately. Otherwise a single timer is
    armed for ``batch_timeout_seconds``. Arming a timer always cancels the
    previous one, so at most one flush timer exists at any time.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        labels: Mapping[str, str],
        flush: Callable[[], None],
        batch: bool = True,
        batch_size: int = 10,
        batch_timeout_seconds: float = 2.5,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if batch_timeout_seconds <= 0:
            raise ValueError("batch_timeout_seconds must be > 0")
        self._loop = loop
        self._labels = dict(labels)
        self._flush = flush
        self._batch = batch
        self._batch_size = batch_size
        self._batch_timeout_seconds = batch_timeout_seconds
        self._records: list[dict[str, Any]] = []
        self._last_flush = loop.time()
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> int:
        return len(self._records)

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def submit(self, entry: LogEntry) -> None:
        self.cancel_timer()
        self._records.append(format_stream(entry, self._labels))

        if not self._batch:
            self._flush()
            return

        if self._should_flush_now():
            self._flush()
        else:
            self._timer = self._loop.call_later(
                self._batch_timeout_seconds, self._on_timer
            )

    def _should_flush_now(self) -> bool:
        if len(self._records) >= self._batch_size:
            return True
        return self._loop.time() - self._last_flush >= self._batch_timeout_seconds

    def _on_timer(self) -> None:
        self._timer = None
        self._flush()

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def take(self) -> list[dict[str, Any]] | None:
        """Hand over the buffered records and start a new batch.

        Returns None when nothing is buffered; in that case the flush-time
        baseline is left untouched.
        """
        if not self._records:
            return None
        self.cancel_timer()
        records = self._records
        self._records = []
        self._last_flush = self._loop.time()
        return records
