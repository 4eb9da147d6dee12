# src/models/price_summary.py

"""Statistical price summary models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

METHOD_ACTIVE_LISTINGS = "active_listings"


@dataclass(frozen=True)
class PriceStats:
    """Robust low / median / high estimate over landed prices."""

    low: float
    median: float
    high: float
    count: int
    count_after_trim: int


@dataclass
class PriceSummary:
    """One stored price summary for a catalog item."""

    item_key: Any
    query: str
    low: float | None = None
    median: float | None = None
    high: float | None = None
    sample_count: int = 0
    currency: str = "USD"
    method: str = METHOD_ACTIVE_LISTINGS
    last_run: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_stats(
        cls,
        item_key: Any,
        stats: PriceStats | None,
        query: str,
    ) -> "PriceSummary":
        """Build a summary, leaving the price fields null without stats."""
        if stats is None:
            return cls(item_key=item_key, query=query)
        return cls(
            item_key=item_key,
            query=query,
            low=stats.low,
            median=stats.median,
            high=stats.high,
            sample_count=stats.count,
        )

    @property
    def is_empty(self) -> bool:
        """True when the sweep found no usable listings."""
        return self.sample_count == 0
