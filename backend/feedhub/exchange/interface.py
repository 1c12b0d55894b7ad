"""Collaborator interfaces the exchange managers depend on.

The REST client and WebSocket clients themselves live outside this package;
anything implementing these contracts can be plugged in, including fakes in
tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
from typing import Protocol

from .models import Event, Market, OrderbookDelta, OrderbookSnapshot, Position, Series


class ExchangeApi(ABC):
    """Synchronous reference-data lookups. Failures are raised."""

    @abstractmethod
    def get_market(self, ticker: str) -> Market | None: ...

    @abstractmethod
    def get_event(self, event_ticker: str) -> Event | None: ...

    @abstractmethod
    def iter_events(self, series_ticker: str) -> Iterable[Event]:
        """Yield every event of a series, following pagination lazily."""

    def get_series(self, ticker: str) -> Series | None:
        raise NotImplementedError


class OrderbookConsumer(Protocol):
    """Callbacks from an order book stream, invoked on its reader thread."""

    def on_connected(self) -> None: ...

    def on_snapshot(self, snapshot: OrderbookSnapshot) -> None: ...

    def on_delta(self, delta: OrderbookDelta) -> None: ...

    def on_disconnected(self, code: int, reason: str) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class PositionConsumer(Protocol):
    def on_connected(self) -> None: ...

    def on_position_update(self, position: Position) -> None: ...

    def on_disconnected(self, code: int, reason: str) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class OrderbookStream(ABC):
    """Push transport for order book snapshots and deltas.

    Messages for one market must be delivered in the order the exchange sent
    them; consumers apply deltas without any sequence checks.
    """

    @abstractmethod
    def subscribe(self, tickers: Collection[str], consumer: OrderbookConsumer) -> None:
        """Subscribe ``tickers``, connecting first if needed."""

    @abstractmethod
    def unsubscribe(self, tickers: Collection[str]) -> None: ...

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def close(self) -> None: ...


class PositionStream(ABC):
    """Push transport for the member's position updates."""

    @abstractmethod
    def subscribe(self, consumer: PositionConsumer, tickers: Collection[str] | None = None) -> None:
        """Subscribe to position updates, optionally limited to ``tickers``."""

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def close(self) -> None: ...
