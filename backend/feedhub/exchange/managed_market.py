"""A subscribed market: reference metadata plus its live order book."""

from __future__ import annotations

import time

from ..core.orderbook import BinaryOrderBook, PriceLevel, Side
from .models import Market


class ManagedMarket:
    """Market metadata (fetched over REST, may be stale) and its order book.

    Metadata and book are updated independently and carry their own
    timestamps.
    """

    def __init__(self, ticker: str, market: Market | None = None) -> None:
        if not ticker:
            raise ValueError("ticker is required")
        self._ticker = ticker
        self._market = market
        self._last_market_update: float | None = time.time() if market is not None else None
        self._book = BinaryOrderBook()

    @property
    def ticker(self) -> str:
        return self._ticker

    @property
    def market(self) -> Market | None:
        return self._market

    @market.setter
    def market(self, market: Market | None) -> None:
        self._market = market
        self._last_market_update = time.time()

    @property
    def last_market_update(self) -> float | None:
        return self._last_market_update

    @property
    def last_orderbook_update(self) -> float | None:
        return self._book.last_update

    @property
    def orderbook(self) -> BinaryOrderBook:
        return self._book

    @property
    def title(self) -> str:
        if self._market is not None and self._market.title:
            return self._market.title
        return self._ticker

    @property
    def status(self) -> str | None:
        return self._market.status if self._market is not None else None

    @property
    def is_active(self) -> bool:
        return self._market is not None and self._market.is_active

    @property
    def has_orderbook(self) -> bool:
        return self._book.has_book

    # Convenience reads in the YES/NO vocabulary

    @property
    def best_yes_bid(self) -> int | None:
        return self._book.best_bid(Side.YES)

    @property
    def best_no_bid(self) -> int | None:
        return self._book.best_bid(Side.NO)

    @property
    def best_yes_ask(self) -> int | None:
        return self._book.best_ask(Side.YES)

    @property
    def best_no_ask(self) -> int | None:
        return self._book.best_ask(Side.NO)

    @property
    def yes_spread(self) -> int | None:
        return self._book.spread(Side.YES)

    def yes_bids(self, limit: int | None = None) -> list[PriceLevel]:
        return self._book.bids(Side.YES, limit)

    def no_bids(self, limit: int | None = None) -> list[PriceLevel]:
        return self._book.bids(Side.NO, limit)

    def yes_asks(self, limit: int | None = None) -> list[PriceLevel]:
        return self._book.asks(Side.YES, limit)

    def __repr__(self) -> str:
        return (
            f"ManagedMarket(ticker={self._ticker!r}, title={self.title!r}, status={self.status!r}, "
            f"best_yes_bid={self.best_yes_bid}, best_yes_ask={self.best_yes_ask})"
        )
