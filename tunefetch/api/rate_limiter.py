"""
Provides an adaptive rate limiter to avoid 429 "Too Many Requests" errors from the catalog.
"""

import asyncio
import logging
import time
from typing import Optional

log = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """
    Spaces calls out and pauses everyone after the API answers 429.
    """

    def __init__(
        self,
        calls_per_second: float = 10.0,
        default_retry_after: float = 1.0,
        max_retry_after: float = 60.0,
    ):
        """
        Initializes the rate limiter.

        Args:
            calls_per_second: Maximum steady call rate.
            default_retry_after: Pause used when a 429 carries no Retry-After.
            max_retry_after: Upper bound on any single pause.
        """
        self._min_interval = 1.0 / calls_per_second
        self._default_retry_after = default_retry_after
        self._max_retry_after = max_retry_after
        self._last_call_time = 0.0
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    async def on_429(self, retry_after: Optional[str] = None) -> float:
        """
        Registers a 429 answer. Returns the pause, in seconds, applied to all callers.
        """
        try:
            delay = float(retry_after) if retry_after else self._default_retry_after
        except ValueError:
            delay = self._default_retry_after
        delay = min(max(delay, 0.0), self._max_retry_after)

        async with self._lock:
            self._blocked_until = max(self._blocked_until, time.monotonic() + delay)
        log.warning(f"[yellow]Rate limit hit. Pausing catalog calls for {delay:.1f}s[/yellow]")
        return delay

    async def acquire(self) -> None:
        """
        Waits if necessary before allowing a call to proceed.
        """
        async with self._lock:
            now = time.monotonic()
            wait = max(
                self._blocked_until - now,
                self._last_call_time + self._min_interval - now,
            )
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call_time = time.monotonic()
