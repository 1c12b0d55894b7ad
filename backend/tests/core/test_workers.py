"""Tests for WorkerPool."""

import threading

import pytest

from feedhub.core.workers import WorkerPool


class TestWorkerPool:
    """Unit tests for the bounded-wait worker pool."""

    def test_submit_runs(self):
        pool = WorkerPool(max_workers=2)
        assert pool.submit(lambda x: x * 2, 21).result(timeout=2.0) == 42
        assert pool.shutdown() is True

    def test_submit_after_shutdown(self):
        pool = WorkerPool()
        pool.shutdown()
        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_shutdown_times_out_on_stuck_task(self):
        """Test that shutdown gives up on a task that outlives the timeout."""
        pool = WorkerPool(max_workers=1)
        release = threading.Event()
        started = threading.Event()

        def stuck():
            started.set()
            release.wait(5.0)

        pool.submit(stuck)
        assert started.wait(2.0)
        assert pool.shutdown(timeout=0.05) is False
        release.set()

    def test_pending_count(self):
        pool = WorkerPool(max_workers=1)
        release = threading.Event()
        future = pool.submit(release.wait, 2.0)
        assert pool.pending_count == 1
        release.set()
        future.result(timeout=2.0)
        assert pool.shutdown() is True

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            WorkerPool(max_workers=0)
