# src/services/search_orchestrator.py

"""Primary/secondary provider search with an explicit fallback policy."""

import logging
from dataclasses import dataclass
from enum import Enum

from src.models.price_observation import PriceObservation
from src.providers.base_provider import BaseProvider
from src.providers.errors import ProviderError

logger = logging.getLogger("price_sweep.orchestrator")


class EngineMode(str, Enum):
    """Which providers a sweep may use."""

    AUTO = "auto"
    PRIMARY_ONLY = "browse"
    SECONDARY_ONLY = "finding"


@dataclass(frozen=True)
class FallbackPolicy:
    """Decide which providers to try and whether their errors escape."""

    mode: EngineMode = EngineMode.AUTO

    @property
    def uses_primary(self) -> bool:
        return self.mode in (EngineMode.AUTO, EngineMode.PRIMARY_ONLY)

    @property
    def uses_secondary(self) -> bool:
        return self.mode in (EngineMode.AUTO, EngineMode.SECONDARY_ONLY)

    @property
    def propagates_errors(self) -> bool:
        """Forced single-provider modes fail fast."""
        return self.mode is not EngineMode.AUTO


class SearchOrchestrator:
    """Turn a query into landed-price observations from one or two sources.

    In ``auto`` mode the primary is tried first; a provider error or an
    empty result moves on to the secondary, and a failing secondary
    yields an empty list so the batch keeps going.  Forced modes use a
    single provider and let its errors propagate.
    """

    def __init__(
        self,
        primary: BaseProvider,
        secondary: BaseProvider,
        policy: FallbackPolicy | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.policy = policy or FallbackPolicy()
        self.page_size = page_size
        self.max_pages = max_pages

    async def _search(
        self, provider: BaseProvider, query: str,
    ) -> list[PriceObservation]:
        return await provider.search(
            query, page_size=self.page_size, max_pages=self.max_pages,
        )

    async def search_prices(self, query: str) -> list[PriceObservation]:
        """Search listings for ``query`` according to the policy."""
        if self.policy.propagates_errors:
            provider = (
                self.primary if self.policy.uses_primary
                else self.secondary
            )
            return await self._search(provider, query)

        if self.primary.is_configured:
            try:
                observations = await self._search(self.primary, query)
            except ProviderError as exc:
                logger.warning(
                    "Primary search failed for %r, falling back: %s",
                    query,
                    exc,
                )
            else:
                if observations:
                    return observations
                logger.debug(
                    "Primary returned nothing for %r", query,
                )

        if not self.secondary.is_configured:
            return []

        try:
            return await self._search(self.secondary, query)
        except ProviderError as exc:
            logger.warning(
                "Secondary search failed for %r: %s", query, exc,
            )
            return []

    async def close(self) -> None:
        """Release both providers' sessions."""
        await self.primary.close()
        await self.secondary.close()
