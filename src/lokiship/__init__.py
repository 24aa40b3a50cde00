"""
Public entrypoints for lokiship.

Provides `get_shipper()` for environment-driven setup plus the building
blocks for explicit configuration.
"""

from __future__ import annotations

from typing import Any

from ._version import __version__
from .core.config import LokiConfig
from .core.coordinator import ShipperState
from .core.entry import LogEntry
from .core.settings import Settings
from .core.shipper import LokiShipper
from .core.stdlib_bridge import LokiHandler, enable_stdlib_bridge
from .metrics.metrics import MetricsCollector
from .transport.base import DeliveryOutcome, Transport
from .transport.http_client import LokiHttpTransport

__all__ = [
    "DeliveryOutcome",
    "LogEntry",
    "LokiConfig",
    "LokiHandler",
    "LokiHttpTransport",
    "LokiShipper",
    "MetricsCollector",
    "Settings",
    "ShipperState",
    "Transport",
    "enable_stdlib_bridge",
    "get_shipper",
    "__version__",
]


def get_shipper(
    *,
    settings: Settings | None = None,
    transport: Transport | None = None,
    **overrides: Any,
) -> LokiShipper:
    """Return a shipper configured from ``LOKISHIP_*`` environment variables.

    Keyword overrides take precedence over the environment.

    Example:
        import lokiship

        shipper = lokiship.get_shipper(labels={"service": "api"})
        shipper.info("service started", category="api.lifecycle")
        shipper.close()
    """
    cfg = settings or Settings()
    return LokiShipper(
        cfg.to_config(**overrides),
        transport=transport,
        metrics=MetricsCollector(enabled=cfg.metrics_enabled),
    )
