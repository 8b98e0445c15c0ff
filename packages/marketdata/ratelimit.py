"""Minimum-interval rate limiter for providers with strict per-minute quotas."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Serialises callers so consecutive acquisitions are spaced apart.

    Usage::

        limiter = RateLimiter(min_interval=12.0)
        async with limiter:
            await fetch(...)

    The first acquisition never waits.  ``sleep`` and ``now_fn`` are
    injectable so tests can run without real delays.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        name: str = "",
        now_fn: Callable[[], float] | None = None,
        sleep: Callable[[float], "asyncio.Future"] | None = None,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self.name = name
        self._now_fn = now_fn or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                wait = self._last_call + self.min_interval - self._now_fn()
                if wait > 0:
                    logger.debug("rate_limiter_wait", limiter=self.name, wait_s=round(wait, 3))
                    await self._sleep(wait)
            self._last_call = self._now_fn()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None
