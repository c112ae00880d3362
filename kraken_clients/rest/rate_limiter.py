"""
Token-bucket admission control for outbound REST requests.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional


class TokenBucketRateLimiter:
    """
    Single shared, unkeyed token bucket.

    Capacity is ``rate_per_second + burst`` tokens, refilled continuously at
    ``rate_per_second``. ``acquire()`` never fails, it only waits.

    Accounting is reservation based: a caller that finds the bucket empty
    takes its token anyway (the balance goes negative) and sleeps until the
    refill would have covered it. Later callers queue behind the debt, so
    waiters are released roughly in arrival order. All bookkeeping runs
    between suspension points, which makes it atomic under the event loop.
    """

    def __init__(
        self,
        rate_per_second: float,
        burst: float = 0,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError(f"rate_per_second must be positive, got {rate_per_second}")
        if burst < 0:
            raise ValueError(f"burst must be non-negative, got {burst}")

        self.rate_per_second = float(rate_per_second)
        self.burst = float(burst)
        self.capacity = self.rate_per_second + self.burst
        self._clock = clock or time.monotonic
        self._tokens = self.capacity
        self._updated_at = self._clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate_per_second)
        self._updated_at = now

    @property
    def available_tokens(self) -> float:
        """Tokens currently in the bucket (negative while callers are queued)."""
        self._refill()
        return self._tokens

    def _reserve(self) -> float:
        """Take one token and return how long the caller must wait for it."""
        self._refill()
        self._tokens -= 1
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self.rate_per_second

    async def acquire(self) -> None:
        """Wait until one admission token is available."""
        delay = self._reserve()
        if delay > 0:
            await asyncio.sleep(delay)


__all__ = ["TokenBucketRateLimiter"]
