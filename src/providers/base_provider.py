# src/providers/base_provider.py

"""Abstract base class for marketplace quote sources."""

import json
import logging
import math
from abc import ABC, abstractmethod
from typing import Any

from curl_cffi.requests import AsyncSession

from src.config.settings import Settings
from src.models.price_observation import PriceObservation
from src.providers.errors import ProviderResponseError
from src.providers.rate_limiter import RateLimiter
from src.providers.retry_policy import RetryPolicy


class BaseProvider(ABC):
    """Common plumbing for a provider: session, throttle and retries.

    Concrete providers own their authentication, pagination and the
    mapping of raw results into :class:`PriceObservation`.
    """

    max_query_length: int = 100

    def __init__(
        self,
        source_name: str,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"price_sweep.{source_name}"
        )
        self.settings = Settings()
        self.limiter = limiter or RateLimiter(name=source_name)
        self.retry_policy = retry_policy or RetryPolicy()
        self.session: AsyncSession = session or AsyncSession(
            timeout=self.settings.REQUEST_TIMEOUT,
            headers={"User-Agent": self.settings.USER_AGENT},
        )

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when the credentials this provider needs are present."""
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> list[PriceObservation]:
        """Search listings and return their price observations."""
        ...

    async def close(self) -> None:
        """Release the HTTP session."""
        await self.session.close()

    def truncate_query(self, query: str) -> str:
        """Cut the query to the provider's maximum keyword length."""
        return query[: self.max_query_length]

    async def _get(
        self,
        url: str,
        query: str,
        params: dict[str, str],
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Throttled GET wrapped in the retry policy."""

        async def attempt() -> Any:
            await self.limiter.throttle()
            return await self.session.get(
                url, params=params, headers=headers,
            )

        return await self.retry_policy.call(
            attempt, provider=self.source_name, query=query,
        )

    def _decode_json(self, resp: Any, query: str) -> Any:
        """Decode a JSON body or raise :class:`ProviderResponseError`."""
        try:
            return resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ProviderResponseError(
                f"invalid JSON body: {exc}",
                provider=self.source_name,
                query=query,
                status=resp.status_code,
            ) from exc

    @staticmethod
    def to_amount(value: Any) -> float | None:
        """Parse a money amount; None when it is missing or not finite."""
        if value is None or value == "":
            return None
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return None
        return amount if math.isfinite(amount) else None

    @staticmethod
    def observation(
        price: float | None, shipping: float | None,
    ) -> PriceObservation | None:
        """Build an observation, dropping non-positive landed prices."""
        if price is None:
            return None
        obs = PriceObservation(price=price, shipping=shipping or 0.0)
        if not math.isfinite(obs.landed) or obs.landed <= 0:
            return None
        return obs
