"""Consolidated quote manager: many subscribers, one upstream poll."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Mapping, Sequence
from threading import Lock

from ..core.poller import PollConsolidator
from ..core.registry import SubscriptionRegistry
from ..errors import ManagerShutdownError
from .cache import QuoteCache
from .interface import (
    AuthorizationHandler,
    ErrorListener,
    MarketDataManager,
    QuoteListener,
    QuoteTransport,
)
from .models import Quote

logger = logging.getLogger(__name__)


def normalize_symbols(symbols: Collection[str] | None) -> list[str]:
    """Upper-case, strip, and de-duplicate, keeping first-seen order."""
    seen: dict[str, None] = {}
    for symbol in symbols or ():
        cleaned = symbol.upper().strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class ConsolidatedQuoteManager(MarketDataManager):
    """MarketDataManager that shares one poll task across all subscriptions.

    Subscribing to overlapping symbol sets costs nothing extra upstream:
    every interval the union of active symbols is fetched once and each
    subscription gets the quotes it asked for. The poll thread starts with
    the first subscription and stops when the last symbol is released.

    Listeners run on the poll thread. A listener that raises is logged and
    does not affect the others.
    """

    def __init__(
        self,
        transport: QuoteTransport,
        *,
        poll_interval: float | None = None,
        quote_cache: QuoteCache | None = None,
        join_timeout: float = 5.0,
    ) -> None:
        if transport is None:
            raise ValueError("transport is required")
        self._transport = transport
        self._cache = quote_cache
        self._registry = SubscriptionRegistry()
        self._poller = PollConsolidator(
            self._fetch,
            self._registry,
            poll_interval if poll_interval is not None else transport.poll_interval,
            name=f"{transport.provider_name.lower()}-consolidated-poller",
            join_timeout=join_timeout,
        )
        self._shutdown = False
        self._lifecycle_lock = Lock()

    @property
    def transport(self) -> QuoteTransport:
        return self._transport

    @property
    def quote_cache(self) -> QuoteCache | None:
        return self._cache

    # --- Provider / auth ---

    @property
    def provider_name(self) -> str:
        return self._transport.provider_name

    @property
    def requires_authentication(self) -> bool:
        return self._transport.requires_authentication

    def is_authenticated(self) -> bool:
        return self._transport.is_authenticated()

    def authenticate(self, handler: AuthorizationHandler) -> None:
        self._check_open()
        if handler is None:
            raise ValueError("handler is required")
        self._transport.authenticate(handler)

    # --- Subscriptions ---

    def subscribe(
        self,
        symbols: Collection[str],
        listener: QuoteListener,
        error_listener: ErrorListener | None = None,
    ) -> str:
        self._check_open()
        normalized = normalize_symbols(symbols)
        if not normalized:
            raise ValueError("Symbols cannot be empty")
        if listener is None:
            raise ValueError("Listener cannot be None")

        subscription_id = str(uuid.uuid4())
        self._registry.subscribe(
            subscription_id,
            normalized,
            on_data=_QuoteDelivery(listener),
            on_error=error_listener,
        )
        logger.info(
            "Created subscription %s for %d symbols: %s",
            subscription_id,
            len(normalized),
            normalized,
        )
        logger.debug("Total unique symbols now tracked: %d", len(self._registry.active_symbols()))

        self._poller.ensure_running()
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        released = self._registry.unsubscribe(subscription_id)
        if released is None:
            return False

        logger.info("Removed subscription %s", subscription_id)
        if self._cache is not None:
            for symbol in released:
                self._cache.remove(symbol)
        self._poller.stop_if_idle()
        return True

    def unsubscribe_all(self) -> None:
        logger.info("Unsubscribing all %d subscriptions", len(self._registry))
        self._registry.clear()
        if self._cache is not None:
            self._cache.clear()
        self._poller.stop(wait=False)

    @property
    def active_subscription_count(self) -> int:
        return len(self._registry)

    def active_subscription_ids(self) -> set[str]:
        return self._registry.subscriber_ids()

    def tracked_symbols(self) -> set[str]:
        """Union of every active subscription's symbols."""
        return set(self._registry.active_symbols())

    def listener_count(self, symbol: str) -> int:
        return self._registry.subscriber_count(symbol.upper().strip())

    # --- Queries ---

    def get_quotes(self, symbols: Collection[str]) -> list[Quote]:
        self._check_open()
        normalized = normalize_symbols(symbols)
        if not normalized:
            return []
        quotes = self._transport.fetch(normalized)
        return [quotes[symbol] for symbol in normalized if symbol in quotes]

    @property
    def poll_interval(self) -> float:
        return self._poller.interval

    @property
    def is_running(self) -> bool:
        return not self._shutdown

    @property
    def is_polling(self) -> bool:
        return self._poller.is_running

    def poll_now(self) -> int:
        """Run one consolidated poll cycle on the calling thread."""
        self._check_open()
        return self._poller.poll_once()

    # --- Lifecycle ---

    def shutdown(self) -> None:
        with self._lifecycle_lock:
            if self._shutdown:
                raise ManagerShutdownError(f"{self.provider_name} manager is already shut down")
            self._shutdown = True

        logger.info("Shutting down %s market data manager", self.provider_name)
        self._registry.clear()
        self._poller.stop(wait=True)
        if self._cache is not None:
            self._cache.clear()
        self._transport.close()

    # --- Internals ---

    def _check_open(self) -> None:
        if self._shutdown:
            raise ManagerShutdownError(f"{self.provider_name} manager has been shut down")

    def _fetch(self, symbols: Sequence[str]) -> Mapping[str, Quote]:
        logger.debug("Polling %d symbols: %s", len(symbols), list(symbols))
        quotes = {symbol.upper(): quote for symbol, quote in self._transport.fetch(symbols).items()}
        if self._cache is not None and quotes:
            # Only symbols still wanted after the fetch are cached.
            active = self._registry.active_symbols()
            self._cache.update_many(q for s, q in quotes.items() if s in active)
        return quotes


class _QuoteDelivery:
    """Adapts the registry's ``{symbol: quote}`` payload to a QuoteListener."""

    __slots__ = ("_listener",)

    def __init__(self, listener: QuoteListener) -> None:
        self._listener = listener

    def __call__(self, quotes: Mapping[str, Quote]) -> None:
        self._listener([quotes[symbol] for symbol in sorted(quotes)])
