"""
Batching and flush engine for shipping log entries to Loki.
"""

from .accumulator import BatchAccumulator
from .config import LokiConfig, parse_config, parse_key_value_labels
from .coordinator import FlushCoordinator, ShipperState
from .entry import LogEntry, format_stream, unix_nanos
from .settings import Settings
from .shipper import LokiShipper

__all__ = [
    "BatchAccumulator",
    "FlushCoordinator",
    "LogEntry",
    "LokiConfig",
    "LokiShipper",
    "Settings",
    "ShipperState",
    "format_stream",
    "parse_config",
    "parse_key_value_labels",
    "unix_nanos",
]
