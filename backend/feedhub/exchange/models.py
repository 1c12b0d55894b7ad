"""Reference data, stream messages, and change events for binary-outcome exchanges."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..core.orderbook import Side

if TYPE_CHECKING:
    from .managed_market import ManagedMarket

_CENTI_CENTS_PER_DOLLAR = Decimal(10_000)
_FOUR_PLACES = Decimal("0.0001")


def centi_cents_to_dollars(value: int | None) -> Decimal:
    """Exchange money fields are 1/10000 of a dollar."""
    if value is None:
        return Decimal("0.0000")
    return (Decimal(value) / _CENTI_CENTS_PER_DOLLAR).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP)


# --- Reference data ---


@dataclass(frozen=True, slots=True)
class Series:
    ticker: str
    title: str | None = None
    category: str | None = None
    frequency: str | None = None


@dataclass(frozen=True, slots=True)
class Market:
    ticker: str
    event_ticker: str | None = None
    title: str | None = None
    status: str | None = None
    yes_bid: int | None = None
    yes_ask: int | None = None
    last_price: int | None = None
    volume: int | None = None

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == "active"


@dataclass(frozen=True, slots=True)
class Event:
    event_ticker: str
    series_ticker: str | None = None
    title: str | None = None
    category: str | None = None
    markets: tuple[Market, ...] = ()


@dataclass(frozen=True, slots=True)
class Position:
    """A member's position in one market. ``position`` > 0 is long YES."""

    market_ticker: str
    position: int = 0
    position_cost: int | None = None  # centi-cents
    realized_pnl: int | None = None  # centi-cents
    fees_paid: int | None = None  # centi-cents
    volume: int | None = None

    @property
    def is_long(self) -> bool:
        return self.position > 0

    @property
    def is_short(self) -> bool:
        return self.position < 0

    @property
    def is_flat(self) -> bool:
        return self.position == 0

    @property
    def absolute_size(self) -> int:
        return abs(self.position)

    @property
    def position_cost_dollars(self) -> Decimal:
        return centi_cents_to_dollars(self.position_cost)

    @property
    def realized_pnl_dollars(self) -> Decimal:
        return centi_cents_to_dollars(self.realized_pnl)

    @property
    def fees_paid_dollars(self) -> Decimal:
        return centi_cents_to_dollars(self.fees_paid)


# --- Order book stream messages ---


@dataclass(frozen=True, slots=True)
class OrderbookSnapshot:
    """Full book for one market: ``[[price, quantity], ...]`` bids per side."""

    market_ticker: str
    yes: tuple[tuple[int, int], ...] = ()
    no: tuple[tuple[int, int], ...] = ()

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> OrderbookSnapshot:
        return cls(
            market_ticker=msg["market_ticker"],
            yes=tuple((int(p), int(q)) for p, q in msg.get("yes") or ()),
            no=tuple((int(p), int(q)) for p, q in msg.get("no") or ()),
        )


@dataclass(frozen=True, slots=True)
class OrderbookDelta:
    """Quantity change at one price on one side of a market's book."""

    market_ticker: str
    price: int
    delta: int
    side: Side
    client_order_id: str | None = None

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> OrderbookDelta:
        return cls(
            market_ticker=msg["market_ticker"],
            price=int(msg["price"]),
            delta=int(msg["delta"]),
            side=Side.parse(msg["side"]),
            client_order_id=msg.get("client_order_id"),
        )

    @property
    def is_own_order(self) -> bool:
        return self.client_order_id is not None

    @property
    def is_increase(self) -> bool:
        return self.delta > 0


# --- Change events ---


class MarketChangeType(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MARKET_INFO_UPDATED = "market_info_updated"
    ORDERBOOK_SNAPSHOT = "orderbook_snapshot"
    ORDERBOOK_DELTA = "orderbook_delta"
    UNSUBSCRIBED = "unsubscribed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MarketChangeEvent:
    type: MarketChangeType
    ticker: str | None = None
    market: ManagedMarket | None = None
    error_message: str | None = None


class EventChangeType(str, Enum):
    LOADING_STARTED = "loading_started"
    EVENT_LOADED = "event_loaded"
    LOADING_COMPLETED = "loading_completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class EventChangeEvent:
    type: EventChangeType
    series_ticker: str | None = None
    event: Event | None = None
    count: int = 0
    error_message: str | None = None


class PositionChangeType(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ADDED = "added"
    UPDATED = "updated"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class PositionChangeEvent:
    type: PositionChangeType
    position: Position | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class CacheStats:
    series_count: int = 0
    event_count: int = 0
    market_count: int = 0

    @property
    def total_count(self) -> int:
        return self.series_count + self.event_count + self.market_count
