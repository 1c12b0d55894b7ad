"""In-process publish/subscribe for state-change events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Listener = Callable[[E], None]


class ListenerBus(Generic[E]):
    """Synchronous fan-out of events to registered listeners.

    Listeners run in registration order on the thread that calls
    ``notify``. Registration swaps in a new tuple, so a listener may add or
    remove listeners (including itself) while a notification is in flight.
    One failing listener is logged and skipped; it never reaches the
    notifier or the listeners after it.
    """

    def __init__(self, name: str = "listeners") -> None:
        self._name = name
        self._listeners: tuple[Listener, ...] = ()
        self._lock = Lock()

    def add_listener(self, listener: Listener) -> None:
        if listener is None:
            raise TypeError(f"{self._name}: listener must not be None")
        with self._lock:
            self._listeners = (*self._listeners, listener)

    def remove_listener(self, listener: Listener) -> bool:
        """Remove the first registration of ``listener``. Returns True if found."""
        with self._lock:
            listeners = list(self._listeners)
            try:
                listeners.remove(listener)
            except ValueError:
                return False
            self._listeners = tuple(listeners)
            return True

    def notify(self, event: E) -> int:
        """Deliver ``event`` to every listener. Returns how many succeeded."""
        delivered = 0
        for listener in self._listeners:
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception("Error in %s listener handling %s", self._name, event)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._listeners = ()

    def __len__(self) -> int:
        return len(self._listeners)
