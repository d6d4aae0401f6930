"""Tests for the fixed-window API rate limiter."""

import threading
import time

import pytest

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import OperationCancelledError
from drive_exporter.gdrive.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_defaults(self) -> None:
        limiter = RateLimiter()

        assert limiter.max_requests == 900
        assert limiter.window_seconds == 100.0

    def test_acquire_within_budget_does_not_block(self) -> None:
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        start = time.monotonic()

        for _ in range(5):
            limiter.acquire()

        assert time.monotonic() - start < 1.0

    def test_blocks_until_window_resets(self) -> None:
        limiter = RateLimiter(max_requests=2, window_seconds=0.2)
        limiter.acquire()
        limiter.acquire()
        start = time.monotonic()

        limiter.acquire()

        assert time.monotonic() - start >= 0.1

    def test_reset_frees_budget(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.acquire()

        limiter.reset()
        start = time.monotonic()
        limiter.acquire()

        assert time.monotonic() - start < 1.0

    def test_cancellation_while_waiting(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        ctx = CancellationContext()
        limiter.acquire(ctx)
        timer = threading.Timer(0.05, ctx.cancel, kwargs={"reason": "interrupt"})
        timer.start()

        try:
            with pytest.raises(OperationCancelledError):
                limiter.acquire(ctx)
        finally:
            timer.cancel()

    def test_thread_safety(self) -> None:
        limiter = RateLimiter(max_requests=50, window_seconds=60)
        threads = [threading.Thread(target=limiter.acquire) for _ in range(50)]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert all(not thread.is_alive() for thread in threads)
