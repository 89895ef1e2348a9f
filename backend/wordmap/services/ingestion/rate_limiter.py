"""
Rate limiting for source requests.

Each source gets a minimum spacing between requests and an hourly quota.
The hourly window is fixed: it opens with the first request after a reset
and closes one hour later.
"""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional
import logging

from wordmap.services.ingestion.base import RateLimit

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 3600.0


@dataclass
class _SourceState:
    last_request_at: Optional[float] = None
    window_started_at: Optional[float] = None
    window_count: int = 0


class RateLimiter:
    """
    Per-source request gate.

    Features:
    - Minimum delay between consecutive requests (one in flight per source)
    - Hourly quota; callers wait for the window to reset instead of failing
    - Sources are independent and may proceed concurrently
    """

    DEFAULT_LIMIT = RateLimit(per_hour=60, min_delay_ms=1000)

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._states: dict[str, _SourceState] = defaultdict(_SourceState)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._limits: dict[str, RateLimit] = {}

    def set_limit(self, source: str, limit: RateLimit):
        """Set the rate limit for a source."""
        self._limits[source] = limit

    def _get_limit(self, source: str) -> RateLimit:
        return self._limits.get(source, self.DEFAULT_LIMIT)

    async def acquire(self, source: str) -> None:
        """
        Block until the next request for ``source`` is allowed, then record it.

        Holding the per-source lock for the whole wait serialises requests to
        one source.
        """
        limit = self._get_limit(source)

        async with self._locks[source]:
            state = self._states[source]
            now = self._clock()

            if state.window_started_at is not None and now - state.window_started_at >= WINDOW_SECONDS:
                state.window_started_at = None
                state.window_count = 0

            if state.window_started_at is not None and state.window_count >= limit.per_hour:
                wait_seconds = state.window_started_at + WINDOW_SECONDS - now
                logger.warning(
                    f"Hourly quota reached for {source}, waiting {wait_seconds:.0f}s"
                )
                if wait_seconds > 0:
                    await self._sleep(wait_seconds)
                state.window_started_at = None
                state.window_count = 0

            if state.last_request_at is not None:
                elapsed = self._clock() - state.last_request_at
                if elapsed < limit.min_delay_seconds:
                    wait_seconds = limit.min_delay_seconds - elapsed
                    logger.debug(f"Spacing requests to {source}, waiting {wait_seconds:.2f}s")
                    await self._sleep(wait_seconds)

            issued_at = self._clock()
            state.last_request_at = issued_at
            if state.window_started_at is None:
                state.window_started_at = issued_at
            state.window_count += 1

    def get_status(self, source: str) -> dict:
        """Get current rate limit status for a source."""
        limit = self._get_limit(source)
        state = self._states.get(source) or _SourceState()
        now = self._clock()

        used = state.window_count
        reset_in = None
        if state.window_started_at is not None:
            remaining_window = state.window_started_at + WINDOW_SECONDS - now
            if remaining_window <= 0:
                used = 0
            else:
                reset_in = remaining_window

        reset_at = None
        if reset_in is not None:
            reset_at = datetime.now(timezone.utc) + timedelta(seconds=reset_in)

        return {
            "source": source,
            "per_hour": limit.per_hour,
            "min_delay_ms": limit.min_delay_ms,
            "used": used,
            "remaining": max(limit.per_hour - used, 0),
            "reset_at": reset_at.isoformat() if reset_at else None,
        }

    def get_all_status(self) -> list[dict]:
        """Get status for all tracked sources."""
        sources = set(self._states.keys()) | set(self._limits.keys())
        return [self.get_status(s) for s in sorted(sources)]
