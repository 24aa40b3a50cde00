"""Interpreter-exit drain for shippers running on their own loop thread.

Shippers in thread mode are registered in a WeakSet. On normal interpreter
exit the atexit handler closes each one with a bounded timeout so buffered
entries get their delivery attempt. Shippers bound to a caller's event loop
are not registered: that loop is usually gone by the time atexit runs, so
their owners must drain them explicitly.

The handler is best-effort and never raises.
"""

from __future__ import annotations

import atexit
import weakref
from typing import TYPE_CHECKING, Any

from . import diagnostics

if TYPE_CHECKING:
    from .shipper import LokiShipper


_shutdown_in_progress: bool = False
_registered_shippers: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_drain_timeout() -> float:
    try:
        from .settings import Settings

        return float(Settings().atexit_drain_timeout_seconds)
    except Exception:  # pragma: no cover - defensive fallback
        return 5.0


def register_shipper(shipper: LokiShipper) -> None:
    """Register a shipper for automatic drain at interpreter exit."""
    _registered_shippers.add(shipper)


def unregister_shipper(shipper: LokiShipper) -> None:
    """Unregister a shipper; called after an explicit close."""
    _registered_shippers.discard(shipper)


def registered_count() -> int:
    return len(_registered_shippers)


def _atexit_handler() -> None:
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return
    _shutdown_in_progress = True
    timeout = _get_drain_timeout()

    # Snapshot; WeakSet iteration can fail if GC runs
    try:
        shippers = list(_registered_shippers)
    except Exception:  # pragma: no cover - rare GC race
        return

    for shipper in shippers:
        try:
            shipper.close(timeout=timeout)
        except Exception as exc:
            diagnostics.warn(
                "shutdown",
                "atexit drain failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )


atexit.register(_atexit_handler)
