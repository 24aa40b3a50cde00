"""
Internal diagnostics channel for non-fatal errors.

The shipper cannot report its own failures through the log pipeline it
implements, so transport failures and misconfiguration are written here as
structured JSON lines on stderr. Output is gated by the
``LOKISHIP_INTERNAL_LOGGING_ENABLED`` setting, read once and cached.

Nothing in this module raises into the caller.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable

DiagnosticWriter = Callable[[dict[str, Any]], None]

# Cached value of the internal logging toggle (None = not read yet)
_internal_logging_enabled: bool | None = None


def _default_writer(payload: dict[str, Any]) -> None:
    sys.stderr.write(json.dumps(payload, default=str) + "\n")
    sys.stderr.flush()


_writer: DiagnosticWriter = _default_writer


def _is_enabled() -> bool:
    global _internal_logging_enabled

    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(Settings().internal_logging_enabled)
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    payload: dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # Diagnostics must never break the host application
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    """Emit a WARN diagnostic when internal logging is enabled."""
    if not _is_enabled():
        return
    _emit("WARN", component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    """Emit a DEBUG diagnostic when internal logging is enabled."""
    if not _is_enabled():
        return
    _emit("DEBUG", component, message, fields)


def error(component: str, message: str, **fields: Any) -> None:
    """Emit an ERROR diagnostic regardless of the internal logging toggle.

    Reserved for conditions that make the shipper useless, such as a
    missing push URL.
    """
    _emit("ERROR", component, message, fields)


def set_writer_for_tests(writer: DiagnosticWriter) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _writer
    _internal_logging_enabled = None
    _writer = _default_writer
