"""
Transport contract used by the flush coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one push attempt."""

    ok: bool
    entries: int = 0
    status_code: int | None = None
    error: str | None = None


@runtime_checkable
class Transport(Protocol):
    """Sends one JSON payload per call.

    ``send`` must not raise for delivery problems; it reports them through
    the returned outcome. ``asyncio.CancelledError`` is the exception: it
    has to propagate so that shutdown can abandon the request.
    """

    async def send(self, payload: dict[str, Any]) -> DeliveryOutcome: ...

    async def aclose(self) -> None: ...


def count_entries(payload: dict[str, Any]) -> int:
    """Number of log values carried by a push payload."""
    total = 0
    for stream in payload.get("streams", ()):
        total += len(stream.get("values", ()))
    return total
