"""Cancellation plumbing shared by the authorization flow and the tree walker.

A single CancellationContext is created when the process starts. SIGINT is
translated into one call to ``cancel()``; long-running operations poll
``raise_if_cancelled()`` at their suspension points or sleep through
``wait()`` so an interrupt unwinds the whole call stack promptly.

Example:
    with signal_cancelling_context() as ctx:
        walker = TreeWalker(service, ctx)
        walker.walk(folder_id, destination)
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from types import FrameType
from typing import Callable, Iterator, List, Optional

import structlog

from drive_exporter.errors import OperationCancelledError

logger = structlog.get_logger()


class CancellationContext:
    """One-way, thread-safe cancellation flag.

    Once cancelled a context stays cancelled. Callbacks registered with
    ``add_callback`` run exactly once, on the thread that cancels.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.RLock()
        self._callbacks: List[Callable[[], None]] = []
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        """True once ``cancel()`` has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel the context and fire registered callbacks.

        Calling this more than once has no further effect.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        logger.debug("context_cancelled", reason=reason)
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, or now if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the context is cancelled when the wait ends.
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the context has been cancelled."""
        if self._event.is_set():
            raise OperationCancelledError(reason=self._reason)


@contextmanager
def signal_cancelling_context() -> Iterator[CancellationContext]:
    """Yield a context that is cancelled by the first SIGINT.

    A second SIGINT raises KeyboardInterrupt for a hard stop. The previous
    handler is restored on exit. Must be entered from the main thread.
    """
    ctx = CancellationContext()

    def _handle_interrupt(signum: int, frame: Optional[FrameType]) -> None:
        if ctx.cancelled:
            raise KeyboardInterrupt
        ctx.cancel(reason=signal.Signals(signum).name)

    previous = signal.signal(signal.SIGINT, _handle_interrupt)
    try:
        yield ctx
    finally:
        signal.signal(signal.SIGINT, previous)
        # Release anything still waiting on the context.
        ctx.cancel(reason="context closed")
