"""Cooperative cancellation signal."""

from __future__ import annotations

import asyncio
import logging

from conform_core.errors import RunCancelledError

logger = logging.getLogger(__name__)


class CancellationSignal:
    """Settable, readable and awaitable cancellation flag.

    Cancellation never interrupts a device call already in flight. Waits in
    the poller and sampler sleep on this signal so they wake as soon as it is
    set.

    Example:
        signal = CancellationSignal()
        loop.add_signal_handler(signal.SIGINT, signal.cancel)
        if await signal.sleep(0.5):
            return  # cancelled while sleeping
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        """Request cancellation.

        Args:
            reason: Optional reason recorded for logs and reports.
        """
        if not self._event.is_set():
            logger.warning("Cancellation requested%s", f": {reason}" if reason else "")
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Return True once cancel() has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> str:
        """Return the reason passed to cancel()."""
        return self._reason

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for up to seconds, waking early on cancellation.

        Args:
            seconds: Maximum sleep duration.

        Returns:
            True if cancellation was requested before or during the sleep.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def raise_if_cancelled(self) -> None:
        """Raise RunCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise RunCancelledError(self._reason or "Run cancelled")
