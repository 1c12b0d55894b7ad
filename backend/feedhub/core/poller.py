"""Single periodic poll task shared by every subscriber of a manager."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any

from .registry import Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)

FetchFn = Callable[[Sequence[Hashable]], Mapping[Hashable, Any]]


class PollConsolidator:
    """Polls the union of all active symbols and fans results out.

    One upstream ``fetch`` per interval no matter how many subscribers there
    are. Each subscriber receives only the part of the result it asked for,
    and only when that part is non-empty.

    Lifecycle:
        poller = PollConsolidator(transport.fetch, registry, interval=5.0)
        registry.subscribe("a", ["AAPL"], on_data=...)
        poller.ensure_running()     # starts the thread, polls immediately
        registry.unsubscribe("a")
        poller.stop_if_idle()       # signals the thread to exit
        poller.stop()               # shutdown: signal and join (bounded)

    Nothing raised by ``fetch`` or by a callback escapes a poll cycle, so a
    failure can never end the periodic task.
    """

    def __init__(
        self,
        fetch: FetchFn,
        registry: SubscriptionRegistry,
        interval: float = 5.0,
        *,
        name: str = "consolidated-poller",
        join_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._fetch = fetch
        self._registry = registry
        self._interval = float(interval)
        self._name = name
        self._join_timeout = join_timeout
        self._clock = clock
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None
        self._cycles = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._thread is not None and self._thread.is_alive()

    @property
    def cycles(self) -> int:
        """Number of poll cycles that reached the upstream fetch."""
        return self._cycles

    def ensure_running(self) -> bool:
        """Start the poll thread if symbols are active and none is running.

        Returns True if a new thread was started.
        """
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            if not self._registry.active_symbols():
                return False

            # A fresh event per run: a previous thread still finishing its
            # last cycle keeps watching its own (already set) event.
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name=self._name,
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

        logger.info(
            "Started %s: %.1fs interval, %d symbols",
            self._name,
            self._interval,
            len(self._registry.active_symbols()),
        )
        return True

    def stop_if_idle(self) -> bool:
        """Signal the poll thread to exit when no symbols remain active.

        The idle check and detaching the thread happen under one lock, so an
        ``ensure_running()`` racing with this call either sees the old thread
        (and the registry was not idle) or starts a fresh one.
        """
        with self._state_lock:
            if self._registry.active_symbols():
                return False
            _, stop_event = self._detach()
        if stop_event is not None:
            stop_event.set()
            logger.info("Stopping %s", self._name)
        return True

    def stop(self, wait: bool = True) -> None:
        """Stop polling. With ``wait``, join the thread for up to ``join_timeout``."""
        with self._state_lock:
            thread, stop_event = self._detach()

        if stop_event is None:
            return
        stop_event.set()
        logger.info("Stopping %s", self._name)

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(self._join_timeout)
            if thread.is_alive():
                # Daemon thread blocked in an upstream call; it exits once
                # the call returns and it sees the stop event.
                logger.warning(
                    "%s did not stop within %.1fs, abandoning it", self._name, self._join_timeout
                )

    def poll_once(self) -> int:
        """Run one fetch-and-distribute cycle.

        Returns the number of subscriptions that received data.
        """
        symbols = self._registry.active_symbols()
        if not symbols:
            return 0

        self._cycles += 1
        try:
            results = self._fetch(sorted(symbols, key=str))
        except Exception as exc:
            logger.error("%s: upstream fetch failed: %s", self._name, exc)
            self._dispatch_error(exc)
            return 0

        if not results:
            logger.debug("%s: no data returned for %d symbols", self._name, len(symbols))
            return 0

        # Subscribers are looked up after the fetch returns, so anyone who
        # unsubscribed meanwhile is simply not delivered to.
        subscriptions = self._registry.subscriptions()
        logger.debug(
            "%s: received %d results, distributing to %d subscriptions",
            self._name,
            len(results),
            len(subscriptions),
        )

        delivered = 0
        for sub in subscriptions:
            subset = {symbol: results[symbol] for symbol in sub.symbols if symbol in results}
            if not subset or sub.on_data is None:
                continue
            try:
                sub.on_data(subset)
                delivered += 1
            except Exception:
                logger.exception("%s: data callback failed for subscription %s", self._name, sub.id)
        return delivered

    # --- Internals ---

    def _detach(self) -> tuple[threading.Thread | None, threading.Event | None]:
        # Caller holds _state_lock.
        thread, stop_event = self._thread, self._stop_event
        self._thread = None
        self._stop_event = None
        return thread, stop_event

    def _dispatch_error(self, error: BaseException) -> None:
        for sub in self._registry.subscriptions():
            self._notify_error(sub, error)

    def _notify_error(self, sub: Subscription, error: BaseException) -> None:
        if sub.on_error is None:
            return
        try:
            sub.on_error(error)
        except Exception:
            logger.exception("%s: error callback failed for subscription %s", self._name, sub.id)

    def _run(self, stop_event: threading.Event) -> None:
        """Fixed-rate loop; the first cycle runs immediately."""
        next_run = self._clock()
        while not stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("%s: poll cycle failed", self._name)

            next_run += self._interval
            delay = next_run - self._clock()
            if delay < 0:
                # Overran the interval; skip the missed ticks.
                next_run = self._clock()
                delay = 0.0
            stop_event.wait(delay)
        logger.debug("%s thread exiting", self._name)
