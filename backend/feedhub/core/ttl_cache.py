"""Thread-safe key/value cache with a per-instance time-to-live."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable, Iterator, Mapping
from dataclasses import dataclass
from datetime import timedelta
from threading import Lock
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[V]):
    """A cached value and the absolute instant (clock seconds) it expires."""

    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(slots=True)
class _FetchSlot:
    """Per-key fetch lock, kept only while some caller is using it."""

    lock: Lock
    users: int = 0


def _to_seconds(ttl: float | timedelta) -> float:
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


class TTLCache(Generic[K, V]):
    """Key/value store whose entries expire a fixed TTL after they are written.

    Expiry is lazy: a lookup at or past an entry's expiration instant treats
    it as absent. ``cleanup_expired()`` reclaims memory and is meant to run on
    a timer, not on every access.

    ``get_or_fetch`` is single-flight per key: concurrent callers that miss
    the same key serialize on a per-key lock, so a live value is fetched once
    and everyone else reads it back from the cache.
    """

    def __init__(
        self,
        ttl: float | timedelta,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.time,
    ) -> None:
        seconds = _to_seconds(ttl)
        if seconds <= 0:
            raise ValueError(f"ttl must be positive, got {ttl!r}")
        self._ttl = seconds
        self._name = name
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = Lock()
        self._fetch_locks: dict[K, _FetchSlot] = {}

    @property
    def ttl(self) -> float:
        """Time-to-live in seconds applied to every entry."""
        return self._ttl

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: K) -> V | None:
        """Return the live value for ``key``, or None if absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.is_expired(now):
            return None
        return entry.value

    def get_or_fetch(self, key: K, fetcher: Callable[[], V | None]) -> V | None:
        """Return the cached value, calling ``fetcher`` on a miss.

        The fetched value is cached unless it is None. Exceptions raised by
        the fetcher propagate to the caller and nothing is cached.
        """
        value = self.get(key)
        if value is not None:
            logger.debug("%s: hit for %s", self._name, key)
            return value

        slot = self._acquire_slot(key)
        try:
            with slot.lock:
                # Another caller may have filled the entry while we waited.
                value = self.get(key)
                if value is not None:
                    return value

                logger.debug("%s: miss for %s, fetching", self._name, key)
                value = fetcher()
                if value is not None:
                    self.put(key, value)
                return value
        finally:
            self._release_slot(key, slot)

    def put(self, key: K, value: V) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""
        if value is None:
            raise ValueError(f"{self._name}: cannot cache None for {key!r}")
        entry = CacheEntry(value=value, expires_at=self._clock() + self._ttl)
        with self._lock:
            self._entries[key] = entry

    def put_all(self, items: Mapping[K, V]) -> None:
        for key, value in items.items():
            self.put(key, value)

    def invalidate(self, key: K) -> bool:
        """Drop ``key``. Returns True if an entry (live or expired) was removed."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        return removed

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("%s: removed %d expired entries", self._name, len(expired))
        return len(expired)

    def keys(self) -> list[K]:
        """Keys of all live entries."""
        now = self._clock()
        with self._lock:
            return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def values(self) -> list[V]:
        now = self._clock()
        with self._lock:
            return [entry.value for entry in self._entries.values() if not entry.is_expired(now)]

    def _acquire_slot(self, key: K) -> _FetchSlot:
        with self._lock:
            slot = self._fetch_locks.get(key)
            if slot is None:
                slot = self._fetch_locks[key] = _FetchSlot(Lock())
            slot.users += 1
            return slot

    def _release_slot(self, key: K, slot: _FetchSlot) -> None:
        with self._lock:
            slot.users -= 1
            if slot.users == 0:
                del self._fetch_locks[key]

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet cleaned up."""
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())
