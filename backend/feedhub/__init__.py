"""Consolidated market-data subscriptions, order books and reference caching."""

from .config import FeedSettings
from .errors import FeedError, ManagerShutdownError, TransportError

__all__ = [
    "FeedError",
    "FeedSettings",
    "ManagerShutdownError",
    "TransportError",
]
