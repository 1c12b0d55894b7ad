"""Bounded background worker pool with a bounded-wait shutdown."""

from __future__ import annotations

import logging
from concurrent import futures
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock

logger = logging.getLogger(__name__)


class WorkerPool(Executor):
    """ThreadPoolExecutor that tracks pending work so shutdown can time out.

    ``shutdown(timeout=...)`` cancels queued tasks, waits up to ``timeout``
    seconds for running ones, then gives up on the stragglers (the threads
    finish on their own; Python offers no way to kill them).
    """

    def __init__(self, max_workers: int = 4, name: str = "worker") -> None:
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers!r}")
        self._name = name
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._pending: set[Future] = set()
        self._lock = Lock()
        self._closed = False

    def submit(self, fn, /, *args, **kwargs) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"{self._name} pool has been shut down")
            future = self._executor.submit(fn, *args, **kwargs)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = True, timeout: float = 5.0) -> bool:
        """Stop accepting work. Returns True if everything finished in time."""
        with self._lock:
            self._closed = True
            pending = set(self._pending)
        self._executor.shutdown(wait=False, cancel_futures=cancel_futures)
        if not wait or not pending:
            return True

        _, not_done = futures.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(
                "%s pool: %d tasks still running after %.1fs, abandoning them",
                self._name,
                len(not_done),
                timeout,
            )
            return False
        return True

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
