# src/filters/price_summarizer.py

"""Outlier-robust low / median / high estimate over landed prices."""

import math
from collections.abc import Sequence

from src.models.price_summary import PriceStats

# Below this many samples the quartiles are too unstable to trim on
MIN_TRIM_SAMPLES = 6
IQR_MULTIPLIER = 1.5


def quantile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolated quantile of an ascending sequence."""
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * p
    base = math.floor(pos)
    rest = pos - base
    if base + 1 < len(sorted_values):
        lower = sorted_values[base]
        return lower + rest * (sorted_values[base + 1] - lower)
    return sorted_values[base]


def iqr_fences(sorted_values: Sequence[float]) -> tuple[float, float]:
    """Tukey fences ``[Q1 - k·IQR, Q3 + k·IQR]``."""
    q1 = quantile(sorted_values, 0.25)
    q3 = quantile(sorted_values, 0.75)
    spread = IQR_MULTIPLIER * (q3 - q1)
    return q1 - spread, q3 + spread


def trim_outliers(values: Sequence[float]) -> list[float]:
    """Sorted copy of ``values`` with values outside the fences removed."""
    ordered = sorted(values)
    if len(ordered) < MIN_TRIM_SAMPLES:
        return ordered
    lo, hi = iqr_fences(ordered)
    return [v for v in ordered if lo <= v <= hi]


def summarize(values: Sequence[float]) -> PriceStats | None:
    """Summarise landed prices, or None when there is nothing to use."""
    if not values:
        return None
    trimmed = trim_outliers(values)
    if not trimmed:
        return None
    return PriceStats(
        low=round(trimmed[0], 2),
        median=round(quantile(trimmed, 0.5), 2),
        high=round(trimmed[-1], 2),
        count=len(values),
        count_after_trim=len(trimmed),
    )
