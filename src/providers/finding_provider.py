# src/providers/finding_provider.py

"""Secondary quote source: the AppID-keyed legacy Finding search API."""

from typing import Any

from curl_cffi.requests import AsyncSession

from src.models.price_observation import PriceObservation
from src.providers.base_provider import BaseProvider
from src.providers.errors import ProviderAuthError, ProviderResponseError
from src.providers.rate_limiter import RateLimiter
from src.providers.retry_policy import RetryPolicy

_OPERATION = "findItemsByKeywords"
_RESPONSE_KEY = f"{_OPERATION}Response"
_ACCEPTED_ACKS = frozenset({"SUCCESS", "WARNING"})


def unwrap(node: Any, *path: str) -> list[Any]:
    """Follow ``path`` through a Finding payload and return a list.

    The Finding JSON wraps nearly every field in a singleton array, but
    not consistently; at each step a list is replaced by its first
    element.  The final value is returned as a list whether it was a
    scalar or an array.
    """
    cur = node
    for key in path:
        if isinstance(cur, list):
            cur = cur[0] if cur else None
        if not isinstance(cur, dict):
            return []
        cur = cur.get(key)
    if cur is None:
        return []
    return cur if isinstance(cur, list) else [cur]


def first(node: Any, *path: str) -> Any:
    """First value at ``path``, or None."""
    values = unwrap(node, *path)
    return values[0] if values else None


class FindingProvider(BaseProvider):
    """Keyword search against the Finding service (JSON payload)."""

    def __init__(
        self,
        app_id: str | None = None,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        super().__init__("finding", limiter, retry_policy, session)
        self.app_id = app_id or self.settings.EBAY_APP_ID
        self.max_query_length = self.settings.FINDING_MAX_QUERY_LENGTH
        self.global_id = self.settings.global_id_for(
            self.settings.EBAY_MARKETPLACE
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id)

    def _params(
        self, query: str, page_size: int, page: int,
    ) -> dict[str, str]:
        return {
            "OPERATION-NAME": _OPERATION,
            "SERVICE-VERSION": self.settings.FINDING_SERVICE_VERSION,
            "SECURITY-APPNAME": str(self.app_id),
            "RESPONSE-DATA-FORMAT": "JSON",
            "REST-PAYLOAD": "true",
            "keywords": query,
            "paginationInput.entriesPerPage": str(page_size),
            "paginationInput.pageNumber": str(page),
            "GLOBAL-ID": self.global_id,
            "itemFilter(0).name": "HideDuplicateItems",
            "itemFilter(0).value": "true",
        }

    def parse_item(self, item: Any) -> PriceObservation | None:
        """Landed price of one listing; free shipping counts as zero."""
        raw_price = (
            first(item, "sellingStatus", "convertedCurrentPrice",
                  "__value__")
            or first(item, "sellingStatus", "currentPrice", "__value__")
        )
        price = self.to_amount(raw_price)

        shipping_type = str(
            first(item, "shippingInfo", "shippingType") or ""
        )
        if "free" in shipping_type.lower():
            shipping: float | None = 0.0
        else:
            shipping = self.to_amount(
                first(item, "shippingInfo", "shippingServiceCost",
                      "__value__")
            )
        return self.observation(price, shipping)

    def _check_ack(self, data: Any, query: str, status: int) -> None:
        ack = str(first(data, _RESPONSE_KEY, "ack") or "")
        if ack.upper() not in _ACCEPTED_ACKS:
            message = first(
                data, _RESPONSE_KEY, "errorMessage", "error", "message",
            )
            raise ProviderResponseError(
                f"ack={ack or 'missing'}: {message or 'no detail'}",
                provider=self.source_name,
                query=query,
                status=status,
            )

    async def search(
        self,
        query: str,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> list[PriceObservation]:
        """Walk result pages until empty, capped or the last page."""
        if not self.is_configured:
            raise ProviderAuthError(
                "Finding API requires EBAY_APP_ID",
                provider=self.source_name,
                query=query,
            )
        q = self.truncate_query(query)
        per_page = min(
            self.settings.FINDING_MAX_PAGE_SIZE,
            page_size or self.settings.EBAY_PAGE_LIMIT,
        )
        pages = max_pages or self.settings.EBAY_PAGES

        observations: list[PriceObservation] = []
        for page in range(1, pages + 1):
            resp = await self._get(
                self.settings.EBAY_FINDING_URL,
                q,
                self._params(q, per_page, page),
            )
            data = self._decode_json(resp, q)
            self._check_ack(data, q, resp.status_code)

            items = unwrap(data, _RESPONSE_KEY, "searchResult", "item")
            for item in items:
                obs = self.parse_item(item)
                if obs is not None:
                    observations.append(obs)

            self.logger.debug(
                "[finding] %r page %d: %d items", q, page, len(items),
            )
            if not items:
                break
            if len(observations) >= self.settings.MAX_SAMPLES:
                break
            total_pages = self.to_amount(
                first(data, _RESPONSE_KEY, "paginationOutput",
                      "totalPages")
            )
            if total_pages is not None and page >= total_pages:
                break

        return observations
