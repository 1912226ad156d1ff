"""
Shared in-memory counters.

RateWindowStore holds per-client request counts for the current fixed
window; GlobalStats holds the aggregate totals reported by /stats.
Both are owned by the application and passed by reference to whoever
needs them.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Dict

import structlog

logger = structlog.get_logger(__name__)


class RateWindowStore:
    """
    Fixed-window request counters keyed by client address.

    Every client is reset at the same boundary, so a client can send up to
    twice the limit across a window edge. Keys are created on first sight
    and never removed.
    """

    def __init__(self, window_seconds: int = 60) -> None:
        self.window_seconds = window_seconds
        self._counts: Dict[str, int] = {}
        self._window_started = time.monotonic()
        self._lock = asyncio.Lock()

    async def increment(self, key: str) -> int:
        """Count one request for key and return the post-increment count."""
        async with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count

    async def get_count(self, key: str) -> int:
        """Current count for key (0 if never seen)."""
        async with self._lock:
            return self._counts.get(key, 0)

    async def reset(self) -> int:
        """
        Zero every tracked counter and start a new window.

        Returns the number of tracked clients.
        """
        async with self._lock:
            for key in self._counts:
                self._counts[key] = 0
            self._window_started = time.monotonic()
            return len(self._counts)

    def seconds_until_reset(self) -> int:
        """Whole seconds until the current window ends (at least 1)."""
        elapsed = time.monotonic() - self._window_started
        return max(1, math.ceil(self.window_seconds - elapsed))

    @property
    def tracked_clients(self) -> int:
        return len(self._counts)


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time view of the aggregate statistics."""
    total_requests: int
    blocked_requests: int
    uptime_seconds: int


class GlobalStats:
    """Aggregate request statistics since process start."""

    def __init__(self) -> None:
        self.total_requests = 0
        self.blocked_requests = 0
        self.started_at = time.time()
        self._started_monotonic = time.monotonic()
        self._lock = asyncio.Lock()

    async def record_accepted(self) -> None:
        async with self._lock:
            self.total_requests += 1

    async def record_blocked(self) -> None:
        async with self._lock:
            self.blocked_requests += 1

    def uptime_seconds(self) -> int:
        return int(time.monotonic() - self._started_monotonic)

    def snapshot(self) -> StatsSnapshot:
        """Immutable copy of the current totals."""
        return StatsSnapshot(
            total_requests=self.total_requests,
            blocked_requests=self.blocked_requests,
            uptime_seconds=self.uptime_seconds(),
        )
