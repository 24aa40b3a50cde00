"""
Log entries and their Loki stream representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class LogEntry:
    """One already-rendered log event."""

    category: str
    level: str
    timestamp: datetime
    message: str

    def __post_init__(self) -> None:
        if not isinstance(self.timestamp, datetime):
            raise ValueError("Timestamp must be a datetime object")

    @classmethod
    def now(cls, category: str, level: str, message: str) -> LogEntry:
        return cls(
            category=category,
            level=level,
            timestamp=datetime.now(timezone.utc),
            message=message,
        )

    @classmethod
    def from_epoch(
        cls, category: str, level: str, created: float, message: str
    ) -> LogEntry:
        """Build an entry from a float epoch (e.g. ``LogRecord.created``)."""
        return cls(
            category=category,
            level=level,
            timestamp=datetime.fromtimestamp(created, tz=timezone.utc),
            message=message,
        )


def unix_nanos(timestamp: datetime) -> str:
    """Render ``timestamp`` as Loki's nanosecond decimal string.

    Resolution is milliseconds, padded with six zeros. Naive datetimes are
    taken to be UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    millis = (timestamp - _EPOCH) // _ONE_MS
    return f"{millis}000000"


def format_stream(entry: LogEntry, labels: Mapping[str, str]) -> dict[str, Any]:
    """Convert an entry into a single-value Loki stream object."""
    return {
        "stream": {
            **labels,
            "category": entry.category,
            "level": entry.level,
        },
        "values": [[unix_nanos(entry.timestamp), entry.message]],
    }
