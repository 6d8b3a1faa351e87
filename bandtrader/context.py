"""Cooperative cancellation for strategy runs."""

import asyncio
import time


class RunContext:
    """
    Cancellation signal with an optional deadline.

    Cancellation is cooperative: code checks ``cancelled`` or suspends in
    ``sleep()``, which returns early once the run is cancelled or the
    deadline passes.

    Example:
        ctx = RunContext(timeout=300)
        while await ctx.sleep(10):
            ...  # poll
    """

    def __init__(self, timeout: float | None = None):
        self._event = asyncio.Event()
        self._deadline = None if timeout is None else time.monotonic() + float(timeout)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self._expired():
            self._event.set()
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def _expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    async def sleep(self, delay: float) -> bool:
        """
        Wait ``delay`` seconds unless cancelled first.

        Returns:
            True if the full delay elapsed, False if the run was cancelled
            (or hit its deadline) before that.
        """
        if self.cancelled:
            return False

        timeout = float(delay)
        remaining = self.remaining()
        hits_deadline = remaining is not None and remaining <= timeout
        if hits_deadline:
            timeout = remaining

        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
            return False
        except asyncio.TimeoutError:
            if hits_deadline:
                # Loop timers may fire a tick early; the deadline is reached.
                self._event.set()
            return not self.cancelled
