"""
Background service that resets the rate-limit window.

Runs on its own interval for the lifetime of the process, independent
of request traffic.
"""

import asyncio
from typing import Optional

import structlog

from .counters import RateWindowStore

logger = structlog.get_logger(__name__)


class WindowResetService:
    """
    Background service that bulk-resets the rate-limit counters.

    Features:
    - Automatic startup/shutdown
    - Fixed-interval reset of every tracked client
    """

    def __init__(self, store: RateWindowStore, interval_seconds: Optional[float] = None):
        self.store = store
        self.interval = interval_seconds if interval_seconds is not None else store.window_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False

        logger.info("Window Reset Service initialized", interval_seconds=self.interval)

    async def start(self) -> None:
        """Start the reset loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_reset_loop())

        logger.info("Window Reset Service started")

    async def stop(self) -> None:
        """Stop the reset loop."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Window Reset Service stopped")

    async def _run_reset_loop(self) -> None:
        """Main reset loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval)

                tracked = await self.store.reset()
                logger.debug("Rate limit window reset", tracked_clients=tracked)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Window reset loop error", error=str(e))

    def is_running(self) -> bool:
        return self._running
