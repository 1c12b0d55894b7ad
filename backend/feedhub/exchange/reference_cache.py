"""TTL-bounded cache of series, events, and markets with lookup indexes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from threading import Lock

from ..config import FeedSettings
from ..core.ttl_cache import TTLCache
from .models import CacheStats, Event, Market, Series

logger = logging.getLogger(__name__)


class ReferenceDataCache:
    """Reference data cache with a TTL per entity class.

    Series change rarely (24 h by default), events more often (30 min),
    markets most (5 min). Putting an event also caches its nested markets
    and indexes them by event, and events are indexed by series, so
    "everything cached for X" lookups do not need a fetch.

    Index entries can outlive the cached value they point to; lookups go
    through the TTL caches, so expired entries are skipped.
    """

    def __init__(
        self,
        series_ttl: float = 24 * 3600.0,
        event_ttl: float = 30 * 60.0,
        market_ttl: float = 5 * 60.0,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._series: TTLCache[str, Series] = TTLCache(series_ttl, name="series", clock=clock)
        self._events: TTLCache[str, Event] = TTLCache(event_ttl, name="events", clock=clock)
        self._markets: TTLCache[str, Market] = TTLCache(market_ttl, name="markets", clock=clock)
        self._events_by_series: dict[str, set[str]] = {}
        self._markets_by_event: dict[str, set[str]] = {}
        self._index_lock = Lock()

    @classmethod
    def from_settings(cls, settings: FeedSettings) -> ReferenceDataCache:
        return cls(settings.series_ttl, settings.event_ttl, settings.market_ttl)

    # --- Series ---

    def get_series(self, ticker: str, fetcher: Callable[[], Series | None]) -> Series | None:
        return self._series.get_or_fetch(ticker, fetcher)

    def get_series_cached(self, ticker: str) -> Series | None:
        return self._series.get(ticker)

    def put_series(self, series: Series | None) -> None:
        if series is not None and series.ticker:
            self._series.put(series.ticker, series)

    def put_all_series(self, series_list: Iterable[Series]) -> None:
        for series in series_list:
            self.put_series(series)

    def invalidate_series(self, ticker: str) -> None:
        self._series.invalidate(ticker)
        logger.debug("Invalidated series cache: %s", ticker)

    # --- Events ---

    def get_event(self, ticker: str, fetcher: Callable[[], Event | None]) -> Event | None:
        fetched: list[Event] = []

        def fetch_and_track() -> Event | None:
            event = fetcher()
            if event is not None:
                fetched.append(event)
            return event

        event = self._events.get_or_fetch(ticker, fetch_and_track)
        if fetched:
            # Only the caller that fetched indexes the event and its markets.
            self.put_event(fetched[0])
        return event

    def get_event_cached(self, ticker: str) -> Event | None:
        return self._events.get(ticker)

    def put_event(self, event: Event | None) -> None:
        if event is None or not event.event_ticker:
            return
        self._events.put(event.event_ticker, event)
        with self._index_lock:
            if event.series_ticker:
                self._events_by_series.setdefault(event.series_ticker, set()).add(event.event_ticker)
            if event.markets:
                self._markets_by_event.setdefault(event.event_ticker, set()).update(
                    m.ticker for m in event.markets
                )
        for market in event.markets:
            self.put_market(market)
        logger.debug("Cached event: %s with %d markets", event.event_ticker, len(event.markets))

    def put_all_events(self, events: Iterable[Event]) -> None:
        for event in events:
            self.put_event(event)

    def events_by_series_cached(self, series_ticker: str) -> list[Event]:
        with self._index_lock:
            tickers = sorted(self._events_by_series.get(series_ticker, ()))
        return [e for e in (self._events.get(t) for t in tickers) if e is not None]

    def invalidate_event(self, ticker: str) -> None:
        event = self._events.get(ticker)
        self._events.invalidate(ticker)
        with self._index_lock:
            if event is not None and event.series_ticker:
                self._events_by_series.get(event.series_ticker, set()).discard(ticker)
            self._markets_by_event.pop(ticker, None)
        logger.debug("Invalidated event cache: %s", ticker)

    # --- Markets ---

    def get_market(self, ticker: str, fetcher: Callable[[], Market | None]) -> Market | None:
        return self._markets.get_or_fetch(ticker, fetcher)

    def get_market_cached(self, ticker: str) -> Market | None:
        return self._markets.get(ticker)

    def put_market(self, market: Market | None) -> None:
        if market is not None and market.ticker:
            self._markets.put(market.ticker, market)

    def put_all_markets(self, markets: Iterable[Market]) -> None:
        for market in markets:
            self.put_market(market)

    def markets_by_event_cached(self, event_ticker: str) -> list[Market]:
        with self._index_lock:
            tickers = sorted(self._markets_by_event.get(event_ticker, ()))
        return [m for m in (self._markets.get(t) for t in tickers) if m is not None]

    def invalidate_market(self, ticker: str) -> None:
        self._markets.invalidate(ticker)
        logger.debug("Invalidated market cache: %s", ticker)

    # --- Bulk ---

    def invalidate_all(self) -> None:
        self._series.invalidate_all()
        self._events.invalidate_all()
        self._markets.invalidate_all()
        with self._index_lock:
            self._events_by_series.clear()
            self._markets_by_event.clear()
        logger.info("Invalidated all caches")

    def cleanup_expired(self) -> CacheStats:
        """Sweep expired entries. Returns how many of each kind were removed."""
        removed = CacheStats(
            series_count=self._series.cleanup_expired(),
            event_count=self._events.cleanup_expired(),
            market_count=self._markets.cleanup_expired(),
        )
        if removed.total_count:
            logger.info(
                "Cache cleanup: removed %d series, %d events, %d markets",
                removed.series_count,
                removed.event_count,
                removed.market_count,
            )
        return removed

    def stats(self) -> CacheStats:
        return CacheStats(
            series_count=len(self._series),
            event_count=len(self._events),
            market_count=len(self._markets),
        )
