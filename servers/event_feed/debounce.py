"""Cancellable delayed actions for collapsing bursts of changes."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()


class Debouncer:
    """Run an async action once a burst of triggers has settled.

    At most one timer is pending at a time: scheduling cancels the previous
    timer first. Once a timer has fired, its action is no longer cancellable
    and runs to completion even if a new timer is scheduled.
    """

    def __init__(self, delay: float, name: str = "debounce"):
        """Initialize debouncer.

        Args:
            delay: Seconds of inactivity before the action fires
            name: Name for logging and identification
        """
        self.delay = delay
        self.name = name
        self.generation = 0
        self.fired_count = 0
        self._timer: Optional[asyncio.Task] = None
        self._running: set[asyncio.Task] = set()

    def schedule(self, action: Callable[[], Awaitable[None]]) -> None:
        """Restart the timer with ``action``. Must be called from a running event loop."""
        self.cancel()
        self.generation += 1
        task = asyncio.get_running_loop().create_task(self._fire_after_delay(self.generation, action))
        self._timer = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def cancel(self) -> None:
        """Cancel the pending timer, if any. Actions already running are left alone."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def wait(self) -> None:
        """Wait until the pending timer and any running actions have finished."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _fire_after_delay(self, generation: int, action: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)

        # A newer schedule() superseded this timer while it slept
        if generation != self.generation:
            return

        self._timer = None
        self.fired_count += 1
        logger.debug("debounce_fired", debouncer=self.name, generation=generation)
        try:
            await action()
        except Exception as e:
            logger.error("debounced_action_failed", debouncer=self.name, error=str(e))
