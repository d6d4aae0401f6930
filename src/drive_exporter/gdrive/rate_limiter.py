"""Rate limiter for Google Drive API calls.

Fixed window limiter keeping the exporter within Google's API quota. Waiting
for the next window is cancellable through the shared CancellationContext.

Example:
    limiter = RateLimiter(max_requests=900, window_seconds=100)

    # Before each API call
    limiter.acquire(ctx)
    service.files().list(...).execute()
"""

import threading
import time
from typing import Optional

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import OperationCancelledError


class RateLimiter:
    """Thread-safe rate limiter using a fixed window algorithm.

    Default configuration: 900 requests per 100 seconds, which is safely under
    Google Drive API's limit of 1000 requests per 100 seconds.
    """

    DEFAULT_MAX_REQUESTS = 900
    DEFAULT_WINDOW_SECONDS = 100.0

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ) -> None:
        self._max_requests = max_requests or self.DEFAULT_MAX_REQUESTS
        self._window_seconds = window_seconds or self.DEFAULT_WINDOW_SECONDS
        self._window_start: float = time.monotonic()
        self._request_count: int = 0
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def acquire(self, ctx: Optional[CancellationContext] = None) -> None:
        """Take one request slot, blocking until the window resets if needed.

        Raises:
            OperationCancelledError: If ``ctx`` is cancelled while waiting.
        """
        while True:
            with self._lock:
                now = time.monotonic()
                elapsed = now - self._window_start
                if elapsed >= self._window_seconds:
                    self._window_start = now
                    self._request_count = 0
                    elapsed = 0.0

                if self._request_count < self._max_requests:
                    self._request_count += 1
                    return

                remaining = self._window_seconds - elapsed

            # Sleep outside the lock so other threads can inspect the window
            if ctx is None:
                time.sleep(remaining)
            elif ctx.wait(remaining):
                raise OperationCancelledError(reason=ctx.reason)

    def reset(self) -> None:
        """Start a new window."""
        with self._lock:
            self._window_start = time.monotonic()
            self._request_count = 0
