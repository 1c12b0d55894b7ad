"""Deduplicated background loading keyed by an identifier."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any

from .bus import ListenerBus

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    NOT_LOADING = "not_loading"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True, slots=True)
class LoadResult:
    key: Hashable
    items_loaded: int
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        if self.error is not None:
            return f"LoadResult(key={self.key!r}, error={self.error})"
        return f"LoadResult(key={self.key!r}, loaded={self.items_loaded})"


class LoadCoordinator:
    """Runs at most one load per key at a time on a worker pool.

    ``try_begin_load`` is the only synchronization point: it atomically
    claims a key and refuses if the key is already in flight. The claim is
    always released in a ``finally`` once the load ends, successfully or
    not. Items are handed to callbacks as they are produced, so consumers
    can start work before a whole batch arrives.
    """

    def __init__(self, executor: Executor, *, name: str = "loader") -> None:
        self._executor = executor
        self._name = name
        self._in_flight: set[Hashable] = set()
        self._loaded: set[Hashable] = set()
        self._lock = Lock()
        self._item_listeners: ListenerBus[tuple[Hashable, Any]] = ListenerBus(f"{name} item")

    # --- State ---

    def try_begin_load(self, key: Hashable) -> bool:
        """Claim ``key`` for loading. False if a load for it is already running."""
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def finish_load(self, key: Hashable, success: bool) -> None:
        with self._lock:
            self._in_flight.discard(key)
            if success:
                self._loaded.add(key)

    def state(self, key: Hashable) -> LoadState:
        with self._lock:
            if key in self._in_flight:
                return LoadState.LOADING
            if key in self._loaded:
                return LoadState.LOADED
            return LoadState.NOT_LOADING

    def is_loading(self, key: Hashable) -> bool:
        return self.state(key) is LoadState.LOADING

    def is_loaded(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._loaded

    def forget(self, key: Hashable) -> None:
        """Drop the loaded mark so the next request reloads ``key``."""
        with self._lock:
            self._loaded.discard(key)

    def clear(self) -> None:
        with self._lock:
            self._in_flight.clear()
            self._loaded.clear()

    # --- Per-item listeners ---

    def add_item_listener(self, listener: Callable[[tuple[Hashable, Any]], None]) -> None:
        """Register a callback receiving ``(key, item)`` for every loaded item."""
        self._item_listeners.add_listener(listener)

    def remove_item_listener(self, listener: Callable[[tuple[Hashable, Any]], None]) -> bool:
        return self._item_listeners.remove_listener(listener)

    # --- Loading ---

    def submit(
        self,
        key: Hashable,
        load: Callable[[], Iterable[Any]],
        on_item: Callable[[Any], None] | None = None,
        on_complete: Callable[[LoadResult], None] | None = None,
    ) -> bool:
        """Start loading ``key`` in the background.

        Returns False, without calling anything, if ``key`` is already
        loading.
        """
        if not self.try_begin_load(key):
            logger.debug("%s: already loading %s", self._name, key)
            return False
        try:
            self._executor.submit(self._run, key, load, on_item, on_complete)
        except Exception:
            self.finish_load(key, success=False)
            raise
        return True

    def run(
        self,
        key: Hashable,
        load: Callable[[], Iterable[Any]],
        on_item: Callable[[Any], None] | None = None,
    ) -> LoadResult:
        """Load ``key`` on the calling thread. The key must already be claimed."""
        count = 0
        try:
            for item in load():
                count += 1
                if on_item is not None:
                    try:
                        on_item(item)
                    except Exception:
                        logger.exception("%s: item callback failed for %s", self._name, key)
                self._item_listeners.notify((key, item))
        except Exception as exc:
            logger.error("%s: failed to load %s: %s", self._name, key, exc)
            self.finish_load(key, success=False)
            return LoadResult(key, count, exc)
        self.finish_load(key, success=True)
        return LoadResult(key, count)

    def _run(
        self,
        key: Hashable,
        load: Callable[[], Iterable[Any]],
        on_item: Callable[[Any], None] | None,
        on_complete: Callable[[LoadResult], None] | None,
    ) -> None:
        try:
            result = self.run(key, load, on_item)
        finally:
            # run() releases the claim itself; this covers anything it missed.
            with self._lock:
                self._in_flight.discard(key)

        if on_complete is not None:
            try:
                on_complete(result)
            except Exception:
                logger.exception("%s: completion callback failed for %s", self._name, key)
