# src/providers/retry_policy.py

"""Bounded exponential backoff around a single provider HTTP call."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from curl_cffi import CurlError

from src.config.settings import Settings
from src.providers.errors import (
    ProviderHTTPError,
    RateLimitExhaustedError,
    RetryExhaustedError,
)

logger = logging.getLogger("price_sweep.retry")

# Failures that never produced an HTTP status
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    CurlError,
    asyncio.TimeoutError,
    ConnectionError,
)


def parse_retry_after(value: str | None) -> float | None:
    """Return a ``Retry-After`` header as seconds, or None if unusable."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def is_retryable_status(status: int) -> bool:
    """429 and every 5xx are worth another attempt."""
    return status == 429 or status >= 500


class RetryPolicy:
    """Retry one HTTP operation on 429, 5xx and transport errors.

    ``operation`` is a zero-argument coroutine factory that performs
    exactly one request (throttle included) and returns the response.
    A 2xx response is returned as-is; any other 4xx raises
    :class:`ProviderHTTPError` at once without using the retry budget.
    """

    def __init__(
        self,
        max_retries: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        jitter: float | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.max_retries = (
            max_retries if max_retries is not None
            else Settings.MAX_RETRIES
        )
        self.base_delay = (
            base_delay if base_delay is not None
            else Settings.BACKOFF_BASE
        )
        self.max_delay = (
            max_delay if max_delay is not None
            else Settings.BACKOFF_MAX
        )
        self.jitter = (
            jitter if jitter is not None else Settings.RETRY_JITTER
        )
        self._sleep = sleep or asyncio.sleep

    def compute_delay(
        self, attempt: int, retry_after: float | None = None,
    ) -> float:
        """Backoff before retry number ``attempt`` (0-based).

        The provider's ``Retry-After`` wins when it asks for longer,
        but never past ``max_delay``.
        """
        delay = min(self.max_delay, self.base_delay * (2 ** attempt))
        if retry_after is not None and retry_after > delay:
            delay = min(retry_after, self.max_delay)
        return delay + random.uniform(0, self.jitter)

    async def call(
        self,
        operation: Callable[[], Awaitable[Any]],
        provider: str,
        query: str = "",
    ) -> Any:
        """Run ``operation`` until it succeeds or the budget is spent."""
        last_status: int | None = None
        last_error: BaseException | None = None

        for attempt in range(self.max_retries + 1):
            retry_after: float | None = None
            try:
                resp = await operation()
            except TRANSPORT_ERRORS as exc:
                last_status = None
                last_error = exc
                logger.warning(
                    "[%s] Request error on attempt %d for %r: %s",
                    provider,
                    attempt + 1,
                    query,
                    exc,
                )
            else:
                status: int = resp.status_code
                if 200 <= status < 300:
                    return resp
                if not is_retryable_status(status):
                    raise ProviderHTTPError(
                        f"HTTP {status}: {_body_excerpt(resp)}",
                        provider=provider,
                        query=query,
                        status=status,
                    )
                last_status = status
                last_error = None
                retry_after = parse_retry_after(
                    resp.headers.get("Retry-After")
                )
                logger.warning(
                    "[%s] HTTP %d on attempt %d for %r",
                    provider,
                    status,
                    attempt + 1,
                    query,
                )

            if attempt < self.max_retries:
                delay = self.compute_delay(attempt, retry_after)
                logger.debug(
                    "[%s] backing off %.2fs", provider, delay,
                )
                await self._sleep(delay)

        error_cls = (
            RateLimitExhaustedError if last_status == 429
            else RetryExhaustedError
        )
        attempts = self.max_retries + 1
        raise error_cls(
            f"gave up after {attempts} attempts",
            provider=provider,
            query=query,
            status=last_status,
        ) from last_error


def _body_excerpt(resp: Any, limit: int = 300) -> str:
    """First ``limit`` characters of a response body for diagnostics."""
    try:
        text = str(resp.text)
    except Exception:
        return ""
    return text[:limit]
