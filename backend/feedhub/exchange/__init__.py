"""Reference data, order books and positions for binary-outcome exchanges.

Public API:
    ExchangeApi          - Abstract REST lookups the managers depend on
    OrderbookStream      - Abstract push transport for book snapshots/deltas
    PositionStream       - Abstract push transport for position updates
    ReferenceDataCache   - Series/event/market cache with per-kind TTLs
    ManagedMarket        - Market metadata plus its live order book
    MarketManager        - Subscribed markets kept current from the stream
    EventManager         - Background per-series event loading and caching
    PositionManager      - Latest non-flat position per market
"""

from .event_manager import EventManager
from .interface import ExchangeApi, OrderbookConsumer, OrderbookStream, PositionConsumer, PositionStream
from .managed_market import ManagedMarket
from .market_manager import MarketManager
from .models import (
    CacheStats,
    Event,
    EventChangeEvent,
    EventChangeType,
    Market,
    MarketChangeEvent,
    MarketChangeType,
    OrderbookDelta,
    OrderbookSnapshot,
    Position,
    PositionChangeEvent,
    PositionChangeType,
    Series,
)
from .position_manager import PositionManager
from .reference_cache import ReferenceDataCache

__all__ = [
    "CacheStats",
    "Event",
    "EventChangeEvent",
    "EventChangeType",
    "EventManager",
    "ExchangeApi",
    "ManagedMarket",
    "Market",
    "MarketChangeEvent",
    "MarketChangeType",
    "MarketManager",
    "OrderbookConsumer",
    "OrderbookDelta",
    "OrderbookSnapshot",
    "OrderbookStream",
    "Position",
    "PositionChangeEvent",
    "PositionChangeType",
    "PositionConsumer",
    "PositionManager",
    "PositionStream",
    "ReferenceDataCache",
    "Series",
]
