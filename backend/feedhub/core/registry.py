"""Reference-counted subscriber -> symbol registry."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, replace
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)

DataCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]


@dataclass(frozen=True, slots=True)
class Subscription:
    """Immutable view of one subscriber's interest and callbacks."""

    id: str
    symbols: frozenset[Hashable]
    on_data: DataCallback | None = None
    on_error: ErrorCallback | None = None


class SubscriptionRegistry:
    """Tracks which subscribers want which symbols.

    Each symbol carries a count of the subscribers that reference it. A
    symbol is in ``active_symbols()`` exactly while that count is above
    zero, and the active set is maintained incrementally rather than being
    recomputed from every subscription.

    All mutations happen under one short-lived lock, so concurrent
    subscribe/unsubscribe calls never lose a count. Readers get snapshots.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._counts: dict[Hashable, int] = {}
        self._lock = Lock()

    def subscribe(
        self,
        subscriber_id: str,
        symbols: Iterable[Hashable],
        on_data: DataCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> frozenset[Hashable]:
        """Add ``symbols`` to a subscriber, creating it if needed.

        Returns the symbols that became active because of this call.
        Callbacks, when given, replace the subscriber's stored ones.
        """
        if subscriber_id is None:
            raise ValueError("subscriber_id is required")
        wanted = frozenset(symbols)
        if not wanted:
            raise ValueError("symbols cannot be empty")

        with self._lock:
            current = self._subscriptions.get(subscriber_id)
            if current is None:
                current = Subscription(id=subscriber_id, symbols=frozenset())
            added = wanted - current.symbols
            self._subscriptions[subscriber_id] = replace(
                current,
                symbols=current.symbols | added,
                on_data=on_data if on_data is not None else current.on_data,
                on_error=on_error if on_error is not None else current.on_error,
            )
            newly_active = self._increment(added)

        if newly_active:
            logger.debug("Symbols now active: %s", sorted(map(str, newly_active)))
        return newly_active

    def remove_symbols(self, subscriber_id: str, symbols: Iterable[Hashable]) -> frozenset[Hashable]:
        """Drop some symbols from one subscriber.

        Returns the symbols that became inactive. Unknown subscribers and
        symbols the subscriber never held are ignored.
        """
        unwanted = frozenset(symbols)
        with self._lock:
            current = self._subscriptions.get(subscriber_id)
            if current is None:
                return frozenset()
            removed = current.symbols & unwanted
            self._subscriptions[subscriber_id] = replace(current, symbols=current.symbols - removed)
            return self._decrement(removed)

    def unsubscribe(self, subscriber_id: str) -> frozenset[Hashable] | None:
        """Remove a subscriber entirely.

        Returns the symbols that became inactive, or None if the subscriber
        was not registered.
        """
        with self._lock:
            current = self._subscriptions.pop(subscriber_id, None)
            if current is None:
                return None
            newly_inactive = self._decrement(current.symbols)

        if newly_inactive:
            logger.debug("No more subscribers for: %s", sorted(map(str, newly_inactive)))
        return newly_inactive

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()
            self._counts.clear()

    # --- Queries ---

    def active_symbols(self) -> frozenset[Hashable]:
        with self._lock:
            return frozenset(self._counts)

    def subscriber_count(self, symbol: Hashable) -> int:
        with self._lock:
            return self._counts.get(symbol, 0)

    def subscription(self, subscriber_id: str) -> Subscription | None:
        with self._lock:
            return self._subscriptions.get(subscriber_id)

    def subscriptions(self) -> list[Subscription]:
        """Snapshot of all subscriptions, safe to iterate while others mutate."""
        with self._lock:
            return list(self._subscriptions.values())

    def subscriber_ids(self) -> set[str]:
        with self._lock:
            return set(self._subscriptions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, subscriber_id: object) -> bool:
        with self._lock:
            return subscriber_id in self._subscriptions

    # --- Internals (caller holds the lock) ---

    def _increment(self, symbols: Iterable[Hashable]) -> frozenset[Hashable]:
        activated = []
        for symbol in symbols:
            count = self._counts.get(symbol, 0)
            if count == 0:
                activated.append(symbol)
            self._counts[symbol] = count + 1
        return frozenset(activated)

    def _decrement(self, symbols: Iterable[Hashable]) -> frozenset[Hashable]:
        deactivated = []
        for symbol in symbols:
            count = self._counts.get(symbol, 0) - 1
            if count <= 0:
                self._counts.pop(symbol, None)
                deactivated.append(symbol)
            else:
                self._counts[symbol] = count
        return frozenset(deactivated)
