# tests/test_browse_provider.py

"""Tests for the Browse (OAuth) provider using mocked HTTP responses."""

import json
import unittest
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from src.models.price_observation import PriceObservation
from src.providers.browse_provider import BrowseProvider
from src.providers.errors import (
    ProviderAuthError,
    ProviderResponseError,
    RateLimitExhaustedError,
)
from src.providers.retry_policy import RetryPolicy
from src.services.search_orchestrator import SearchOrchestrator


def _resp(payload: Any, status: int = 200) -> MagicMock:
    """Create a mock response carrying a JSON payload."""
    resp = MagicMock()
    resp.status_code = status
    resp.headers = {}
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    return resp


def _token_resp(ttl: int = 7200) -> MagicMock:
    return _resp({"access_token": "tok-123", "expires_in": ttl})


def _item(price: str | None, ship: str | None = None) -> dict[str, Any]:
    item: dict[str, Any] = {}
    if price is not None:
        item["price"] = {"value": price, "currency": "USD"}
    if ship is not None:
        item["shippingOptions"] = [
            {"shippingCost": {"value": ship, "currency": "USD"}},
            {"shippingCost": {"value": "99.00", "currency": "USD"}},
        ]
    return item


def _page(*items: dict[str, Any]) -> MagicMock:
    return _resp({"itemSummaries": list(items)})


class FakeClock:
    """Settable monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestBrowseProvider(unittest.IsolatedAsyncioTestCase):
    """Browse provider search, paging and token handling."""

    def setUp(self) -> None:
        self.session = MagicMock()
        self.session.post = AsyncMock(return_value=_token_resp())
        self.session.get = AsyncMock()
        self.session.close = AsyncMock()
        self.limiter = MagicMock()
        self.limiter.throttle = AsyncMock()
        self.clock = FakeClock()
        self.provider = BrowseProvider(
            client_id="id",
            client_secret="secret",
            limiter=self.limiter,
            retry_policy=RetryPolicy(
                max_retries=2, jitter=0, sleep=AsyncMock(),
            ),
            session=self.session,
            clock=self.clock,
        )

    async def test_landed_price_uses_first_shipping_option(self) -> None:
        """Price plus the first shipping option, extras ignored."""
        self.session.get.side_effect = [
            _page(_item("4.50", "1.00"), _item("10.00")),
        ]
        obs = await self.provider.search("celebi", max_pages=1)
        self.assertEqual([o.landed for o in obs], [5.50, 10.00])
        self.assertEqual(obs[0].shipping, 1.00)

    async def test_listings_without_price_dropped(self) -> None:
        self.session.get.side_effect = [
            _page(_item(None), _item("0"), _item("abc"), _item("3.00")),
        ]
        obs = await self.provider.search("celebi", max_pages=1)
        self.assertEqual([o.landed for o in obs], [3.00])

    async def test_token_reused_across_searches(self) -> None:
        """One token fetch serves the whole run."""
        self.session.get.side_effect = [
            _page(_item("1.00")),
            _page(_item("2.00")),
        ]
        await self.provider.search("a", max_pages=1)
        await self.provider.search("b", max_pages=1)
        self.session.post.assert_awaited_once()

    async def test_token_refreshed_after_expiry(self) -> None:
        self.session.get.side_effect = [
            _page(_item("1.00")),
            _page(_item("2.00")),
        ]
        await self.provider.search("a", max_pages=1)
        self.clock.now += 10_000
        await self.provider.search("b", max_pages=1)
        self.assertEqual(self.session.post.await_count, 2)

    async def test_token_request_uses_basic_auth_form(self) -> None:
        await self.provider.warm_up()
        kwargs = self.session.post.call_args.kwargs
        self.assertTrue(kwargs["headers"]["Authorization"].startswith("Basic "))
        self.assertEqual(kwargs["data"]["grant_type"], "client_credentials")

    async def test_search_headers_and_filters(self) -> None:
        self.session.get.side_effect = [_page(_item("1.00"))]
        await self.provider.search("celebi", max_pages=1)
        kwargs = self.session.get.call_args.kwargs
        self.assertEqual(
            kwargs["headers"]["Authorization"], "Bearer tok-123"
        )
        self.assertIn("X-EBAY-C-MARKETPLACE-ID", kwargs["headers"])
        self.assertIn("priceCurrency:USD", kwargs["params"]["filter"])
        self.assertIn(
            "buyingOptions:{FIXED_PRICE|AUCTION}",
            kwargs["params"]["filter"],
        )

    async def test_stops_on_empty_page(self) -> None:
        self.session.get.side_effect = [
            _page(_item("1.00")),
            _page(),
            _page(_item("9.00")),
        ]
        obs = await self.provider.search("x", max_pages=3)
        self.assertEqual(len(obs), 1)
        self.assertEqual(self.session.get.await_count, 2)

    async def test_offset_advances_by_page_size(self) -> None:
        self.session.get.side_effect = [
            _page(_item("1.00")),
            _page(_item("2.00")),
        ]
        await self.provider.search("x", page_size=50, max_pages=2)
        offsets = [
            c.kwargs["params"]["offset"]
            for c in self.session.get.call_args_list
        ]
        limits = {
            c.kwargs["params"]["limit"]
            for c in self.session.get.call_args_list
        }
        self.assertEqual(offsets, ["0", "50"])
        self.assertEqual(limits, {"50"})

    async def test_page_size_capped_at_200(self) -> None:
        self.session.get.side_effect = [_page(_item("1.00"))]
        await self.provider.search("x", page_size=500, max_pages=1)
        params = self.session.get.call_args.kwargs["params"]
        self.assertEqual(params["limit"], "200")

    async def test_stops_at_sample_cap(self) -> None:
        self.provider.settings.MAX_SAMPLES = 2
        self.session.get.side_effect = [
            _page(_item("1.00"), _item("2.00")),
            _page(_item("3.00")),
        ]
        obs = await self.provider.search("x", max_pages=5)
        self.assertEqual(len(obs), 2)
        self.assertEqual(self.session.get.await_count, 1)

    async def test_query_truncated(self) -> None:
        self.session.get.side_effect = [_page()]
        await self.provider.search("x" * 250, max_pages=1)
        params = self.session.get.call_args.kwargs["params"]
        self.assertEqual(len(params["q"]), 100)

    async def test_throttles_every_request(self) -> None:
        self.session.get.side_effect = [
            _page(_item("1.00")),
            _page(),
        ]
        await self.provider.search("x", max_pages=2)
        # token POST + two GETs
        self.assertEqual(self.limiter.throttle.await_count, 3)

    async def test_persistent_429_raises_rate_limit_error(self) -> None:
        self.session.get.return_value = _resp({}, status=429)
        self.session.get.side_effect = None
        with self.assertRaises(RateLimitExhaustedError):
            await self.provider.search("x", max_pages=1)

    async def test_rejected_credentials_raise_auth_error(self) -> None:
        self.session.post.return_value = _resp(
            {"error": "invalid_client"}, status=401,
        )
        with self.assertRaises(ProviderAuthError) as ctx:
            await self.provider.warm_up()
        self.assertEqual(ctx.exception.status, 401)

    async def test_missing_credentials_raise_auth_error(self) -> None:
        self.provider.client_id = None
        self.assertFalse(self.provider.is_configured)
        with self.assertRaises(ProviderAuthError):
            await self.provider.search("x")
        self.session.post.assert_not_awaited()

    async def test_token_response_without_token(self) -> None:
        self.session.post.return_value = _resp({"expires_in": 7200})
        with self.assertRaises(ProviderAuthError):
            await self.provider.warm_up()


class TestMalformedBrowsePayloads(unittest.IsolatedAsyncioTestCase):
    """Unexpected payload shapes become provider errors or are skipped."""

    def setUp(self) -> None:
        self.session = MagicMock()
        self.session.post = AsyncMock(return_value=_token_resp())
        self.session.get = AsyncMock()
        self.session.close = AsyncMock()
        limiter = MagicMock()
        limiter.throttle = AsyncMock()
        self.provider = BrowseProvider(
            client_id="id",
            client_secret="secret",
            limiter=limiter,
            retry_policy=RetryPolicy(
                max_retries=0, jitter=0, sleep=AsyncMock(),
            ),
            session=self.session,
        )

    async def test_null_shipping_option_counts_as_free(self) -> None:
        self.session.get.side_effect = [_page(
            {"price": {"value": "5"}, "shippingOptions": [None]},
        )]
        obs = await self.provider.search("x", max_pages=1)
        self.assertEqual([o.landed for o in obs], [5.0])

    async def test_non_object_items_skipped(self) -> None:
        self.session.get.side_effect = [_page(
            None, "junk", {"price": "7"}, _item("3.00", "1.00"),
        )]
        obs = await self.provider.search("x", max_pages=1)
        self.assertEqual([o.landed for o in obs], [4.0])

    async def test_non_object_body_raises_response_error(self) -> None:
        self.session.get.side_effect = [_resp([])]
        with self.assertRaises(ProviderResponseError):
            await self.provider.search("x", max_pages=1)

    async def test_unparseable_expiry_uses_default_lifetime(self) -> None:
        self.session.post.return_value = _resp(
            {"access_token": "tok", "expires_in": "soon"},
        )
        token, ttl = await self.provider._fetch_token()
        self.assertEqual(token, "tok")
        self.assertEqual(ttl, 7200.0)

    async def test_non_object_token_body_raises_auth_error(self) -> None:
        self.session.post.return_value = _resp(["tok"])
        with self.assertRaises(ProviderAuthError):
            await self.provider.warm_up()

    async def test_malformed_primary_falls_back_in_auto_mode(self) -> None:
        """A bad primary body still lets the secondary price the item."""
        secondary = MagicMock()
        secondary.is_configured = True
        secondary.search = AsyncMock(return_value=[
            PriceObservation(price=10.0), PriceObservation(price=12.0),
        ])
        orchestrator = SearchOrchestrator(
            self.provider, secondary, max_pages=1,
        )
        self.session.get.side_effect = [_resp([])]
        result = await orchestrator.search_prices("x")
        self.assertEqual([o.landed for o in result], [10.0, 12.0])

        self.session.post.return_value = _resp(
            {"access_token": "tok", "expires_in": "soon"},
        )
        self.provider._token = None
        self.session.get.side_effect = [_page(
            {"price": {"value": "5"}, "shippingOptions": [None]},
        )]
        result = await orchestrator.search_prices("x")
        self.assertEqual([o.landed for o in result], [5.0])


if __name__ == "__main__":
    unittest.main()
