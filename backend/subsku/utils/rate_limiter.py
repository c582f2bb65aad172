"""Per-instance pacing of outbound API calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable


class RateLimiter:
    """Enforce a minimum interval between consecutive calls.

    One instance belongs to one worker's Shopify client; nothing is shared
    at module level.

    Usage:
        limiter = RateLimiter(min_interval=0.5)
        await limiter.acquire()
        response = await client.post(...)
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next call is allowed, then claim the slot."""
        async with self._lock:
            if self._last_call is not None:
                remaining = self._last_call + self.min_interval - self._clock()
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_call = self._clock()
