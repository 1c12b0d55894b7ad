"""Manages subscribed markets and their live order books."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from threading import Lock

from ..config import FeedSettings
from ..core.bus import ListenerBus
from ..core.workers import WorkerPool
from ..errors import ManagerShutdownError
from .interface import ExchangeApi, OrderbookStream
from .managed_market import ManagedMarket
from .models import MarketChangeEvent, MarketChangeType, OrderbookDelta, OrderbookSnapshot

logger = logging.getLogger(__name__)

MarketChangeListener = Callable[[MarketChangeEvent], None]


def _as_list(tickers: str | Iterable[str]) -> list[str]:
    if isinstance(tickers, str):
        return [tickers]
    return list(tickers)


class MarketManager:
    """Keeps an up-to-date ManagedMarket for every subscribed ticker.

    Subscribing creates the market locally, fetches its metadata on the
    worker pool, and subscribes it on the order book stream. Snapshots and
    deltas arrive on the stream's reader thread and are applied in arrival
    order; messages for tickers that are not (or no longer) subscribed are
    ignored.

    Every state change is published as a MarketChangeEvent to registered
    listeners on the thread that caused it.
    """

    def __init__(self, api: ExchangeApi, stream: OrderbookStream, *, workers: int = 4, shutdown_timeout: float = 5.0) -> None:
        if api is None:
            raise ValueError("api must not be None")
        if stream is None:
            raise ValueError("stream must not be None")
        self._api = api
        self._stream = stream
        self._pool = WorkerPool(max_workers=workers, name="market-manager")
        self._shutdown_timeout = shutdown_timeout
        self._markets: dict[str, ManagedMarket] = {}
        self._markets_lock = Lock()
        self._listeners: ListenerBus[MarketChangeEvent] = ListenerBus("market change")
        self._consumer = _OrderbookConsumer(self)
        self._connected = False
        self._shutdown = False

    @classmethod
    def from_settings(cls, api: ExchangeApi, stream: OrderbookStream, settings: FeedSettings) -> MarketManager:
        return cls(api, stream, workers=settings.workers, shutdown_timeout=settings.shutdown_timeout)

    # --- Subscription management ---

    def subscribe(self, tickers: str | Iterable[str]) -> list[str]:
        """Subscribe to one or more tickers. Returns the ones that were new."""
        self._check_open()
        new_tickers: list[str] = []
        with self._markets_lock:
            for ticker in _as_list(tickers):
                if ticker and ticker not in self._markets:
                    self._markets[ticker] = ManagedMarket(ticker)
                    new_tickers.append(ticker)

        if not new_tickers:
            return []

        try:
            self._stream.subscribe(new_tickers, self._consumer)
        except Exception:
            logger.error("Stream subscribe failed for %s, rolling back", new_tickers)
            with self._markets_lock:
                for ticker in new_tickers:
                    self._markets.pop(ticker, None)
            raise

        for ticker in new_tickers:
            logger.info("Subscribing to market: %s", ticker)
            self._pool.submit(self._fetch_market_info, ticker)
        return new_tickers

    def unsubscribe(self, tickers: str | Iterable[str]) -> list[str]:
        """Drop tickers and their books. Returns the ones that were subscribed."""
        tickers = _as_list(tickers)
        removed: list[ManagedMarket] = []
        with self._markets_lock:
            for ticker in tickers:
                market = self._markets.pop(ticker, None)
                if market is not None:
                    removed.append(market)

        for market in removed:
            market.orderbook.clear()
            logger.info("Unsubscribed from market: %s", market.ticker)
            self._notify(MarketChangeEvent(MarketChangeType.UNSUBSCRIBED, market.ticker, market))

        if removed and self._stream.is_connected():
            self._stream.unsubscribe([m.ticker for m in removed])
        return [m.ticker for m in removed]

    def unsubscribe_all(self) -> list[str]:
        return self.unsubscribe(self.subscribed_tickers())

    def is_subscribed(self, ticker: str) -> bool:
        with self._markets_lock:
            return ticker in self._markets

    def subscribed_tickers(self) -> set[str]:
        with self._markets_lock:
            return set(self._markets)

    @property
    def subscription_count(self) -> int:
        with self._markets_lock:
            return len(self._markets)

    # --- Market data access ---

    def market(self, ticker: str) -> ManagedMarket | None:
        with self._markets_lock:
            return self._markets.get(ticker)

    def markets(self) -> list[ManagedMarket]:
        with self._markets_lock:
            return list(self._markets.values())

    def refresh_market_info(self, ticker: str) -> bool:
        """Re-fetch metadata for one subscribed ticker in the background."""
        self._check_open()
        if not self.is_subscribed(ticker):
            return False
        self._pool.submit(self._fetch_market_info, ticker)
        return True

    def refresh_all_market_info(self) -> int:
        self._check_open()
        tickers = self.subscribed_tickers()
        for ticker in tickers:
            self._pool.submit(self._fetch_market_info, ticker)
        return len(tickers)

    # --- Listeners ---

    def add_listener(self, listener: MarketChangeListener) -> None:
        self._listeners.add_listener(listener)

    def remove_listener(self, listener: MarketChangeListener) -> bool:
        return self._listeners.remove_listener(listener)

    # --- Lifecycle ---

    @property
    def is_connected(self) -> bool:
        return self._connected and self._stream.is_connected()

    def shutdown(self) -> None:
        if self._shutdown:
            raise ManagerShutdownError("MarketManager is already shut down")
        self._shutdown = True
        logger.info("Shutting down MarketManager")

        self._stream.close()
        self._connected = False
        with self._markets_lock:
            self._markets.clear()
        self._pool.shutdown(timeout=self._shutdown_timeout)
        self._listeners.clear()

    # --- Stream handling (reader thread) ---

    def handle_connected(self) -> None:
        self._connected = True
        logger.info("MarketManager stream connected")
        self._notify(MarketChangeEvent(MarketChangeType.CONNECTED))

    def handle_disconnected(self, code: int, reason: str) -> None:
        self._connected = False
        logger.info("MarketManager stream disconnected: %s - %s", code, reason)
        self._notify(MarketChangeEvent(MarketChangeType.DISCONNECTED))

    def handle_error(self, error: BaseException) -> None:
        logger.error("MarketManager stream error: %s", error)
        self._notify(MarketChangeEvent(MarketChangeType.ERROR, error_message=str(error)))

    def handle_snapshot(self, snapshot: OrderbookSnapshot) -> None:
        market = self.market(snapshot.market_ticker)
        if market is None:
            return
        market.orderbook.apply_snapshot(snapshot.yes, snapshot.no)
        logger.debug("Applied orderbook snapshot for %s", snapshot.market_ticker)
        self._notify(MarketChangeEvent(MarketChangeType.ORDERBOOK_SNAPSHOT, snapshot.market_ticker, market))

    def handle_delta(self, delta: OrderbookDelta) -> None:
        market = self.market(delta.market_ticker)
        if market is None:
            return
        market.orderbook.apply_delta(delta.side, delta.price, delta.delta)
        self._notify(MarketChangeEvent(MarketChangeType.ORDERBOOK_DELTA, delta.market_ticker, market))

    # --- Internals ---

    def _fetch_market_info(self, ticker: str) -> None:
        try:
            info = self._api.get_market(ticker)
        except Exception as e:
            logger.error("Failed to fetch market info for %s: %s", ticker, e)
            self._notify(MarketChangeEvent(MarketChangeType.ERROR, ticker, error_message=str(e)))
            return

        market = self.market(ticker)
        if market is not None and info is not None:
            market.market = info
            logger.debug("Fetched market info for %s: %s", ticker, info.title)
            self._notify(MarketChangeEvent(MarketChangeType.MARKET_INFO_UPDATED, ticker, market))

    def _notify(self, event: MarketChangeEvent) -> None:
        self._listeners.notify(event)

    def _check_open(self) -> None:
        if self._shutdown:
            raise ManagerShutdownError("MarketManager has been shut down")


class _OrderbookConsumer:
    """Routes stream callbacks into the manager."""

    def __init__(self, manager: MarketManager) -> None:
        self._manager = manager

    def on_connected(self) -> None:
        self._manager.handle_connected()

    def on_snapshot(self, snapshot: OrderbookSnapshot) -> None:
        self._manager.handle_snapshot(snapshot)

    def on_delta(self, delta: OrderbookDelta) -> None:
        self._manager.handle_delta(delta)

    def on_disconnected(self, code: int, reason: str) -> None:
        self._manager.handle_disconnected(code, reason)

    def on_error(self, error: BaseException) -> None:
        self._manager.handle_error(error)
