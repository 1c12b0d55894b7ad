"""Generic consolidation primitives shared by the quote and exchange managers."""

from .bus import ListenerBus
from .loader import LoadCoordinator, LoadResult, LoadState
from .orderbook import BinaryOrderBook, PriceLevel, Side
from .poller import PollConsolidator
from .registry import Subscription, SubscriptionRegistry
from .ttl_cache import TTLCache
from .workers import WorkerPool

__all__ = [
    "BinaryOrderBook",
    "ListenerBus",
    "LoadCoordinator",
    "LoadResult",
    "LoadState",
    "PollConsolidator",
    "PriceLevel",
    "Side",
    "Subscription",
    "SubscriptionRegistry",
    "TTLCache",
    "WorkerPool",
]
