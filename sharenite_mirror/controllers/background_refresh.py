"""Background refresh.

Runs one synchronization pass as a detached task. Nobody awaits it, so its
failures are logged here and kept on ``last_error``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundRefresh:
    """Fire-and-forget runner allowing at most one refresh at a time"""

    def __init__(self, refresh: Callable[[], Awaitable[object]]):
        self.refresh = refresh
        self.task: Optional[asyncio.Task] = None
        self.last_error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> Optional[asyncio.Task]:
        """Start a refresh unless one is already running. Returns the task started, if any."""
        if self.running:
            logger.debug("Background refresh already running")
            return None

        self.task = asyncio.create_task(self._run())
        logger.info("Background refresh started")
        return self.task

    async def _run(self):
        try:
            await self.refresh()
            self.last_error = None
            logger.info("Background refresh complete")
        except asyncio.CancelledError:
            logger.info("Background refresh cancelled")
            raise
        except Exception as e:
            self.last_error = e
            logger.error(f"Error in background refresh: {e}")

    async def stop(self):
        """Cancel a running refresh and wait for it to unwind"""
        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        self.task = None
