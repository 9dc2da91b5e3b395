"""Debounced action.

Coalesces rapid triggers into a single call after a quiet period. The owner
re-arms it with schedule(), and must flush() or cancel() it when done.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DebouncedAction:
    """Runs the most recently scheduled callable once ``delay`` seconds pass without a new schedule()."""

    def __init__(self, delay: float, name: str = "debounced action"):
        self.delay = delay
        self.name = name
        self._action: Optional[Callable[[], None]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._action is not None

    def schedule(self, action: Callable[[], None]):
        """Arm (or re-arm) the timer with ``action``; any earlier pending action is replaced."""
        self._cancel_timer()
        self._action = action
        self._task = asyncio.create_task(self._wait_and_run())

    async def _wait_and_run(self):
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        self._task = None
        self._run_pending()

    def _run_pending(self):
        action, self._action = self._action, None
        if action is None:
            return
        try:
            action()
        except Exception as e:
            logger.error(f"Error running {self.name}: {e}")

    def _cancel_timer(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    def flush(self):
        """Run the pending action now, if any."""
        self._cancel_timer()
        self._run_pending()

    def cancel(self):
        """Drop the pending action without running it."""
        self._cancel_timer()
        self._action = None
