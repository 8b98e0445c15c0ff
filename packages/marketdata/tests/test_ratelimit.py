"""Tests for marketdata.ratelimit.RateLimiter using a fake clock."""

import pytest

from marketdata.ratelimit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0
        self.sleeps = []

    def time(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_call_does_not_wait():
    clock = FakeClock()
    limiter = RateLimiter(12.0, now_fn=clock.time, sleep=clock.sleep)

    await limiter.acquire()

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_consecutive_calls_are_spaced():
    clock = FakeClock()
    limiter = RateLimiter(12.0, now_fn=clock.time, sleep=clock.sleep)

    await limiter.acquire()
    clock.now += 2.0
    await limiter.acquire()
    await limiter.acquire()

    assert clock.sleeps == [pytest.approx(10.0), pytest.approx(12.0)]


@pytest.mark.asyncio
async def test_no_wait_when_interval_already_elapsed():
    clock = FakeClock()
    limiter = RateLimiter(1.0, now_fn=clock.time, sleep=clock.sleep)

    async with limiter:
        pass
    clock.now += 5.0
    async with limiter:
        pass

    assert clock.sleeps == []


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        RateLimiter(-1.0)
