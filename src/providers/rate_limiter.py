# src/providers/rate_limiter.py

"""Minimum-spacing request throttle shared by all workers of a provider."""

import asyncio
import logging
import math
import random
import time
from collections.abc import Awaitable, Callable

from src.config.settings import Settings

logger = logging.getLogger("price_sweep.rate_limiter")

_MIN_RPS = 0.1


class RateLimiter:
    """Grant request slots no closer together than ``1 / rps`` seconds.

    A single "next eligible time" cursor is kept per instance and
    advanced under an ``asyncio.Lock``, so the spacing holds no matter
    how many workers share the limiter.  ``clock`` and ``sleep`` are
    injectable for deterministic tests.
    """

    def __init__(
        self,
        rps: float | None = None,
        jitter: float | None = None,
        name: str = "provider",
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self.rps = max(
            _MIN_RPS,
            rps if rps is not None else Settings.EBAY_RPS,
        )
        self.interval: float = math.ceil(1000 / self.rps) / 1000
        self.jitter = (
            jitter if jitter is not None else Settings.THROTTLE_JITTER
        )
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._next_at: float = 0.0
        self._lock = asyncio.Lock()

    async def throttle(self) -> None:
        """Block until this caller's slot is due, then claim it."""
        async with self._lock:
            now = self._clock()
            wait = max(0.0, self._next_at - now)
            if wait > 0:
                pause = wait + random.uniform(0, self.jitter)
                logger.debug(
                    "[%s] throttling %.3fs", self.name, pause,
                )
                await self._sleep(pause)
            self._next_at = max(now, self._next_at) + self.interval
