"""
Sound playback for firing alerts.

Playback is scheduled as a background task and never awaited by the
request path. Failures are logged and dropped.
"""

import asyncio
from typing import Optional, Set

import structlog

from ..config import SoundSettings
from ..models.alert import AlertPayload
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class SoundDispatcher:
    """
    Fire-and-forget sound player.

    At most ``max_concurrent`` plays run at once; extra dispatches are
    skipped rather than queued.
    """

    def __init__(self, settings: SoundSettings, metrics: Optional[MetricsCollector] = None) -> None:
        self.settings = settings
        self.metrics = metrics
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def should_play(self, payload: AlertPayload) -> bool:
        return self.settings.enabled and payload.status == "firing"

    def dispatch(self, payload: AlertPayload) -> bool:
        """Schedule playback for a payload. Returns True if a play was started."""
        if not self.should_play(payload):
            return False

        if self.in_flight >= self.settings.max_concurrent:
            logger.info("Sound skipped, players busy", in_flight=self.in_flight)
            self._record("skipped")
            return False

        task = asyncio.create_task(self._play())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _play(self) -> None:
        command = self.settings.build_command()
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await process.communicate()
            except asyncio.CancelledError:
                # Player must not outlive the service
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
                raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Sound playback failed",
                command=command[0],
                error=str(e),
                error_type=type(e).__name__,
            )
            self._record("error")
            return

        if process.returncode != 0:
            logger.error(
                "Sound player exited with error",
                command=command[0],
                returncode=process.returncode,
                stderr=stderr.decode(errors="replace").strip(),
            )
            self._record("error")
            return

        logger.debug("Sound played", sound=self.settings.name)
        self._record("played")

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_sound(outcome)

    async def aclose(self) -> None:
        """Cancel plays still running at shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
