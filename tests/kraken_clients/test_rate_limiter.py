"""Tests for the token-bucket rate limiter."""

import asyncio
import time

import pytest

from kraken_clients.rest.rate_limiter import TokenBucketRateLimiter


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestConfiguration:
    """Constructor validation."""

    def test_capacity_is_rate_plus_burst(self):
        limiter = TokenBucketRateLimiter(10, 2, clock=FakeClock())

        assert limiter.capacity == 12
        assert limiter.available_tokens == 12

    @pytest.mark.parametrize("rate", [0, -1])
    def test_rejects_non_positive_rate(self, rate):
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(rate, 1)

    def test_rejects_negative_burst(self):
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(1, -1)


class TestAccounting:
    """Reservation bookkeeping with a controlled clock."""

    def test_full_bucket_admits_capacity_without_delay(self):
        limiter = TokenBucketRateLimiter(10, 2, clock=FakeClock())

        delays = [limiter._reserve() for _ in range(12)]

        assert delays == [0.0] * 12

    def test_next_caller_waits_one_refill_interval(self):
        limiter = TokenBucketRateLimiter(10, 2, clock=FakeClock())
        for _ in range(12):
            limiter._reserve()

        assert limiter._reserve() == pytest.approx(0.1)

    def test_waiters_queue_behind_each_other(self):
        limiter = TokenBucketRateLimiter(10, 0, clock=FakeClock())
        for _ in range(10):
            limiter._reserve()

        delays = [limiter._reserve() for _ in range(3)]

        assert delays == [pytest.approx(0.1), pytest.approx(0.2), pytest.approx(0.3)]

    def test_refill_is_continuous_and_capped(self):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(10, 2, clock=clock)
        for _ in range(12):
            limiter._reserve()

        clock.advance(0.5)
        assert limiter.available_tokens == pytest.approx(5)

        clock.advance(60)
        assert limiter.available_tokens == pytest.approx(12)

    def test_refill_after_wait_admits_immediately(self):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(1, 0, clock=clock)
        limiter._reserve()

        clock.advance(1.0)

        assert limiter._reserve() == 0.0


class TestAcquire:
    """Real-time behaviour of acquire()."""

    @pytest.mark.asyncio
    async def test_burst_is_instant_then_waits(self):
        limiter = TokenBucketRateLimiter(10, 2)

        started = time.monotonic()
        for _ in range(12):
            await limiter.acquire()
        burst_elapsed = time.monotonic() - started

        await limiter.acquire()
        total_elapsed = time.monotonic() - started

        assert burst_elapsed < 0.05
        assert total_elapsed >= 0.08

    @pytest.mark.asyncio
    async def test_concurrent_acquires_all_complete(self):
        limiter = TokenBucketRateLimiter(50, 0)
        for _ in range(50):
            await limiter.acquire()

        started = time.monotonic()
        await asyncio.wait_for(asyncio.gather(*(limiter.acquire() for _ in range(5))), timeout=2)
        elapsed = time.monotonic() - started

        # Fifth queued caller needs five refill intervals of 20ms
        assert elapsed >= 0.08
