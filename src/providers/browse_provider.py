# src/providers/browse_provider.py

"""Primary quote source: the OAuth-authenticated Browse search API."""

import asyncio
import base64
import time
from collections.abc import Callable
from typing import Any

from curl_cffi.requests import AsyncSession

from src.models.price_observation import PriceObservation
from src.providers.base_provider import BaseProvider
from src.providers.errors import (
    ProviderAuthError,
    ProviderHTTPError,
    ProviderResponseError,
)
from src.providers.rate_limiter import RateLimiter
from src.providers.retry_policy import RetryPolicy

# Refresh the bearer token this many seconds before it expires
_TOKEN_EXPIRY_MARGIN = 60.0
_DEFAULT_TOKEN_TTL = 7200.0

_BROWSE_FILTERS = (
    "buyingOptions:{FIXED_PRICE|AUCTION}",
    "priceCurrency:USD",
    "conditions:{NEW|USED}",
)


def _field(node: Any, key: str) -> Any:
    """``node[key]`` when ``node`` is an object, else None."""
    return node.get(key) if isinstance(node, dict) else None


class BrowseProvider(BaseProvider):
    """Paginated item-summary search behind a client-credentials token.

    The bearer token is fetched once and reused for the whole run; it
    is only refreshed after its advertised lifetime has elapsed.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        session: AsyncSession | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__("browse", limiter, retry_policy, session)
        self.client_id = client_id or self.settings.EBAY_CLIENT_ID
        self.client_secret = (
            client_secret or self.settings.EBAY_CLIENT_SECRET
        )
        self.max_query_length = self.settings.BROWSE_MAX_QUERY_LENGTH
        self._clock = clock or time.monotonic
        self._token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # ── Token ────────────────────────────────────────────

    def _basic_auth(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode("ascii")

    async def _fetch_token(self) -> tuple[str, float]:
        """POST the client-credentials grant and return (token, ttl)."""
        if not self.is_configured:
            raise ProviderAuthError(
                "Browse API requires EBAY_CLIENT_ID and "
                "EBAY_CLIENT_SECRET",
                provider=self.source_name,
            )

        async def attempt() -> Any:
            await self.limiter.throttle()
            return await self.session.post(
                self.settings.EBAY_TOKEN_URL,
                headers={
                    "Content-Type": (
                        "application/x-www-form-urlencoded"
                    ),
                    "Authorization": self._basic_auth(),
                },
                data={
                    "grant_type": "client_credentials",
                    "scope": self.settings.EBAY_SCOPE,
                },
            )

        try:
            resp = await self.retry_policy.call(
                attempt, provider=self.source_name,
            )
        except ProviderHTTPError as exc:
            raise ProviderAuthError(
                f"token request rejected: {exc.detail}",
                provider=self.source_name,
                status=exc.status,
            ) from exc

        data = self._decode_json(resp, "")
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ProviderAuthError(
                "token response carried no access_token",
                provider=self.source_name,
                status=resp.status_code,
            )
        ttl = self.to_amount(data.get("expires_in"))
        if ttl is None or ttl <= 0:
            ttl = _DEFAULT_TOKEN_TTL
        self.logger.info(
            "[browse] Obtained bearer token (expires in %.0fs)", ttl,
        )
        return str(token), ttl

    async def get_token(self) -> str:
        """Return the cached bearer token, fetching it when missing."""
        async with self._token_lock:
            if (
                self._token is None
                or self._clock() >= self._token_expires_at
            ):
                token, ttl = await self._fetch_token()
                self._token = token
                self._token_expires_at = (
                    self._clock()
                    + max(0.0, ttl - _TOKEN_EXPIRY_MARGIN)
                )
            return self._token

    async def warm_up(self) -> None:
        """Fetch the token eagerly so bad credentials fail at startup."""
        await self.get_token()

    # ── Search ───────────────────────────────────────────

    def _headers(self, token: str) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-EBAY-C-MARKETPLACE-ID": self.settings.EBAY_MARKETPLACE,
        }
        if self.settings.EBAY_ENDUSERCTX:
            headers["X-EBAY-C-ENDUSERCTX"] = (
                self.settings.EBAY_ENDUSERCTX
            )
        return headers

    def _parse_item(self, item: Any) -> PriceObservation | None:
        """Map one item summary to price + first shipping option."""
        if not isinstance(item, dict):
            return None
        price = self.to_amount(_field(item.get("price"), "value"))
        shipping: float | None = None
        options = item.get("shippingOptions")
        if isinstance(options, list) and options:
            shipping = self.to_amount(
                _field(_field(options[0], "shippingCost"), "value")
            )
        return self.observation(price, shipping)

    async def search(
        self,
        query: str,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> list[PriceObservation]:
        """Page through results until empty, capped or out of pages."""
        q = self.truncate_query(query)
        limit = min(
            self.settings.BROWSE_MAX_PAGE_SIZE,
            page_size or self.settings.EBAY_PAGE_LIMIT,
        )
        pages = max_pages or self.settings.EBAY_PAGES
        token = await self.get_token()
        headers = self._headers(token)

        observations: list[PriceObservation] = []
        offset = 0
        for page in range(pages):
            params = {
                "q": q,
                "limit": str(limit),
                "offset": str(offset),
                "filter": ",".join(_BROWSE_FILTERS),
            }
            if self.settings.EBAY_CATEGORY_ID:
                params["category_ids"] = self.settings.EBAY_CATEGORY_ID

            resp = await self._get(
                self.settings.EBAY_BROWSE_URL, q, params, headers,
            )
            data = self._decode_json(resp, q)
            if not isinstance(data, dict):
                raise ProviderResponseError(
                    f"expected a JSON object, got {type(data).__name__}",
                    provider=self.source_name,
                    query=q,
                    status=resp.status_code,
                )
            items = data.get("itemSummaries") or []
            if not isinstance(items, list):
                items = []
            for item in items:
                obs = self._parse_item(item)
                if obs is not None:
                    observations.append(obs)

            self.logger.debug(
                "[browse] %r page %d: %d items",
                q,
                page + 1,
                len(items),
            )
            if not items:
                break
            offset += limit
            if len(observations) >= self.settings.MAX_SAMPLES:
                break

        return observations
