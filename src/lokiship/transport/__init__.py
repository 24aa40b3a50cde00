from .base import DeliveryOutcome, Transport, count_entries
from .http_client import LokiHttpTransport

__all__ = ["DeliveryOutcome", "LokiHttpTransport", "Transport", "count_entries"]
