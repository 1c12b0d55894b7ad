"""Background loading and TTL caching of exchange events, grouped by series."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator
from threading import Lock

from ..config import FeedSettings
from ..core.bus import ListenerBus
from ..core.loader import LoadCoordinator, LoadResult
from ..core.ttl_cache import TTLCache
from ..core.workers import WorkerPool
from ..errors import ManagerShutdownError
from .interface import ExchangeApi
from .models import Event, EventChangeEvent, EventChangeType

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], None]
CompletionCallback = Callable[[LoadResult], None]


class EventManager:
    """Loads every event of a series in the background and caches them.

    Only one load per series runs at a time; asking again while one is in
    flight is a no-op that returns False. Events are cached and announced
    as they arrive, page by page, rather than after the whole series.
    """

    def __init__(
        self,
        api: ExchangeApi,
        *,
        event_ttl: float = 30 * 60.0,
        workers: int = 4,
        shutdown_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if api is None:
            raise ValueError("api must not be None")
        self._api = api
        self._events: TTLCache[str, Event] = TTLCache(event_ttl, name="events", clock=clock)
        self._events_by_series: dict[str, set[str]] = {}
        self._index_lock = Lock()
        self._pool = WorkerPool(max_workers=workers, name="event-loader")
        self._loader = LoadCoordinator(self._pool, name="event-loader")
        self._listeners: ListenerBus[EventChangeEvent] = ListenerBus("event change")
        self._shutdown_timeout = shutdown_timeout
        self._shutdown = False

    @classmethod
    def from_settings(
        cls,
        api: ExchangeApi,
        settings: FeedSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> EventManager:
        return cls(
            api,
            event_ttl=settings.event_ttl,
            workers=settings.workers,
            shutdown_timeout=settings.shutdown_timeout,
            clock=clock,
        )

    # --- Loading ---

    def load_events_for_series(
        self,
        series_ticker: str,
        on_event: EventCallback | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> bool:
        """Start loading all events of ``series_ticker`` in the background.

        ``on_event`` is called for each event as it is cached and
        ``on_complete`` once with the LoadResult. Returns False if the series
        is already loading, in which case neither callback is called.
        """
        self._check_open()

        def complete(result: LoadResult) -> None:
            if result.success:
                logger.info("Loaded %d events for series %s", result.items_loaded, series_ticker)
                self._notify(
                    EventChangeEvent(EventChangeType.LOADING_COMPLETED, series_ticker, count=result.items_loaded)
                )
            else:
                self._notify(
                    EventChangeEvent(EventChangeType.ERROR, series_ticker, error_message=str(result.error))
                )
            if on_complete is not None:
                on_complete(result)

        started = self._loader.submit(
            series_ticker,
            lambda: self._iter_series(series_ticker),
            lambda event: self._on_event_loaded(series_ticker, event, on_event),
            complete,
        )
        if not started:
            logger.debug("Series %s is already loading", series_ticker)
        return started

    def load_events_for_many(
        self,
        series_tickers: Iterable[str],
        on_event: EventCallback | None = None,
        on_all_complete: Callable[[list[LoadResult]], None] | None = None,
    ) -> None:
        """Load several series in parallel.

        ``on_all_complete`` receives the results of the loads this call
        started, once all of them have finished. Series already loading are
        skipped but do not hold up the callback.
        """
        self._check_open()
        tickers = list(series_tickers)
        remaining = len(tickers)
        results: list[LoadResult] = []
        lock = Lock()

        def count_down(result: LoadResult | None) -> None:
            nonlocal remaining
            with lock:
                if result is not None:
                    results.append(result)
                remaining -= 1
                done = remaining == 0
            if done and on_all_complete is not None:
                try:
                    on_all_complete(list(results))
                except Exception:
                    logger.exception("Error in all-complete callback")

        if not tickers:
            if on_all_complete is not None:
                on_all_complete([])
            return

        for ticker in tickers:
            if not self.load_events_for_series(ticker, on_event, count_down):
                count_down(None)

    def _iter_series(self, series_ticker: str) -> Iterator[Event]:
        logger.info("Loading events for series: %s", series_ticker)
        self._notify(EventChangeEvent(EventChangeType.LOADING_STARTED, series_ticker))
        yield from self._api.iter_events(series_ticker)

    def _on_event_loaded(self, series_ticker: str, event: Event, on_event: EventCallback | None) -> None:
        self._cache(event, series_ticker)
        self._notify(EventChangeEvent(EventChangeType.EVENT_LOADED, series_ticker, event))
        if on_event is not None:
            on_event(event)

    # --- Cache access ---

    def get_event(self, event_ticker: str) -> Event | None:
        return self._events.get(event_ticker)

    def get_event_or_fetch(self, event_ticker: str) -> Event | None:
        """Return the cached event, fetching it on a miss.

        Fetch failures are logged and reported as None.
        """
        event = self._events.get(event_ticker)
        if event is not None:
            return event
        try:
            event = self._api.get_event(event_ticker)
        except Exception as e:
            logger.error("Failed to fetch event %s: %s", event_ticker, e)
            return None
        if event is not None:
            self.cache_event(event)
        return event

    def events_by_series(self, series_ticker: str) -> list[Event]:
        with self._index_lock:
            tickers = sorted(self._events_by_series.get(series_ticker, ()))
        return [e for e in (self._events.get(t) for t in tickers) if e is not None]

    def is_series_loaded(self, series_ticker: str) -> bool:
        return self._loader.is_loaded(series_ticker)

    def is_series_loading(self, series_ticker: str) -> bool:
        return self._loader.is_loading(series_ticker)

    @property
    def cached_event_count(self) -> int:
        return len(self._events)

    def cached_event_tickers(self) -> set[str]:
        return set(self._events.keys())

    # --- Cache management ---

    def cache_event(self, event: Event | None) -> None:
        if event is not None and event.event_ticker:
            self._cache(event, event.series_ticker)

    def cache_events(self, events: Iterable[Event]) -> None:
        for event in events:
            self.cache_event(event)

    def invalidate_event(self, event_ticker: str) -> None:
        self._events.invalidate(event_ticker)

    def invalidate_series(self, series_ticker: str) -> None:
        with self._index_lock:
            tickers = self._events_by_series.pop(series_ticker, set())
        for ticker in tickers:
            self._events.invalidate(ticker)
        self._loader.forget(series_ticker)

    def invalidate_all(self) -> None:
        self._events.invalidate_all()
        with self._index_lock:
            self._events_by_series.clear()
        self._loader.clear()
        logger.info("Invalidated all cached events")

    def cleanup_expired(self) -> int:
        removed = self._events.cleanup_expired()
        if removed:
            logger.info("Cleaned up %d expired events from cache", removed)
        return removed

    # --- Listeners ---

    def add_listener(self, listener: Callable[[EventChangeEvent], None]) -> None:
        self._listeners.add_listener(listener)

    def remove_listener(self, listener: Callable[[EventChangeEvent], None]) -> bool:
        return self._listeners.remove_listener(listener)

    # --- Lifecycle ---

    def shutdown(self) -> None:
        if self._shutdown:
            raise ManagerShutdownError("EventManager is already shut down")
        self._shutdown = True
        logger.info("Shutting down EventManager")
        self._pool.shutdown(timeout=self._shutdown_timeout)
        self.invalidate_all()
        self._listeners.clear()

    # --- Internals ---

    def _cache(self, event: Event, series_ticker: str | None) -> None:
        self._events.put(event.event_ticker, event)
        if series_ticker:
            with self._index_lock:
                self._events_by_series.setdefault(series_ticker, set()).add(event.event_ticker)

    def _notify(self, event: EventChangeEvent) -> None:
        self._listeners.notify(event)

    def _check_open(self) -> None:
        if self._shutdown:
            raise ManagerShutdownError("EventManager has been shut down")
