"""
Bridge Python's standard ``logging`` module into a `LokiShipper`.

The handler renders each record with its formatter and submits the result
as an already-formatted entry. The logger name becomes the ``category``
label and the level name becomes the ``level`` label. Records from
lokiship itself and from the httpx stack it pushes with are never forwarded.
"""

from __future__ import annotations

import logging

from .entry import LogEntry
from .shipper import LokiShipper

# Records from these loggers are dropped: forwarding them would feed the
# shipper its own transport chatter and loop forever
_LOOP_PREFIXES = ("lokiship", "httpx", "httpcore")


def _is_internal_logger(name: str) -> bool:
    return any(
        name == prefix or name.startswith(prefix + ".") for prefix in _LOOP_PREFIXES
    )


class LokiHandler(logging.Handler):
    """``logging.Handler`` that forwards records to a shipper.

    Example:
        shipper = LokiShipper(url="http://localhost:3100/loki/api/v1/push")
        logging.getLogger().addHandler(LokiHandler(shipper))
    """

    def __init__(
        self,
        shipper: LokiShipper,
        level: int = logging.NOTSET,
        *,
        close_shipper: bool = False,
    ) -> None:
        super().__init__(level)
        self.shipper = shipper
        self._close_shipper = close_shipper

    def emit(self, record: logging.LogRecord) -> None:
        if _is_internal_logger(record.name):
            return
        try:
            entry = LogEntry.from_epoch(
                category=record.name,
                level=record.levelname,
                created=record.created,
                message=self.format(record),
            )
            self.shipper.submit(entry)
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if self._close_shipper:
                self.shipper.close()
        finally:
            super().close()


def enable_stdlib_bridge(
    shipper: LokiShipper,
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
    remove_existing_handlers: bool = False,
    formatter: logging.Formatter | None = None,
) -> LokiHandler:
    """Attach a `LokiHandler` to ``logger`` (the root logger by default)."""
    target = logger if logger is not None else logging.getLogger()
    if remove_existing_handlers:
        for existing in list(target.handlers):
            target.removeHandler(existing)
    handler = LokiHandler(shipper, level=level)
    if formatter is not None:
        handler.setFormatter(formatter)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
