"""Session cancellation token and deadline timer.

A session owns exactly one ``CancellationToken``. Everything the session
starts (the pager, image fetches, color scans) observes the same token:

- awaitables are wrapped with ``token.race()`` so the underlying task, and
  with it any httpx read, is cancelled as soon as the token fires;
- CPU-bound scans running in worker threads poll ``token.cancelled`` every
  ``CANCEL_CHECK_ROWS`` rows.

``cancel()`` must be called from the event loop thread. The flag itself is a
``threading.Event`` so threads can read it safely.
"""
import asyncio
import logging
import threading
from typing import Awaitable, Optional, TypeVar

from colorfeed.resolver.errors import CancelledError

logger = logging.getLogger(__name__)
T = TypeVar('T')

DEADLINE_EXCEEDED = "deadline exceeded"


class CancellationToken:
    """One-shot, idempotent broadcast cancellation signal."""

    def __init__(self) -> None:
        self._flag = threading.Event()
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Fire the signal. Returns False if it had already fired."""
        if self._flag.is_set():
            return False
        self._reason = reason
        self._flag.set()
        self._event.set()
        logger.debug(f"Cancellation fired: {reason}")
        return True

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise CancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` unless the token fires first.

        When the token wins, the task running ``aw`` is cancelled and awaited
        before ``CancelledError`` is raised, so no read outlives the call.
        """
        if self._flag.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            raise CancelledError(self._reason or "cancelled")
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        if task.cancelled():
            raise CancelledError(self._reason or "cancelled")
        return task.result()


class Deadline:
    """Absolute cutoff for a session, armed on first submission."""

    def __init__(self, timeout: float, token: CancellationToken):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._token = token
        self._handle: Optional[asyncio.TimerHandle] = None
        self._expires_at: Optional[float] = None

    @property
    def started(self) -> bool:
        return self._expires_at is not None

    @property
    def expired(self) -> bool:
        return self.started and self._token.reason == DEADLINE_EXCEEDED

    def start(self) -> None:
        """Arm the timer. Later calls are no-ops."""
        if self._expires_at is not None:
            return
        loop = asyncio.get_running_loop()
        self._expires_at = loop.time() + self.timeout
        self._handle = loop.call_later(self.timeout, self._expire)

    def remaining(self) -> Optional[float]:
        """Seconds left, or None if the deadline has not been armed."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - asyncio.get_running_loop().time())

    def disarm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _expire(self) -> None:
        self._handle = None
        if self._token.cancel(DEADLINE_EXCEEDED):
            logger.info(f"Session deadline of {self.timeout:.1f}s exceeded")
