"""Horizontal price levels derived from a series (pivots, volume profile)."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from core.entities import Candle
from core.indicators.base import require_period

__all__ = ["PivotLevels", "VolumeBin", "pivot_points", "volume_profile"]


@dataclass(frozen=True, slots=True)
class PivotLevels:
    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


@dataclass(frozen=True, slots=True)
class VolumeBin:
    price: float
    volume: float


def pivot_points(candles: Sequence[Candle]) -> PivotLevels | None:
    """Standard floor pivots computed from the most recent candle."""
    if not candles:
        return None

    last = candles[-1]
    high, low, close = last.high, last.low, last.close
    pivot = (high + low + close) / 3

    return PivotLevels(
        pivot=pivot,
        r1=2 * pivot - low,
        s1=2 * pivot - high,
        r2=pivot + (high - low),
        s2=pivot - (high - low),
        r3=high + 2 * (pivot - low),
        s3=low - 2 * (high - pivot),
    )


def volume_profile(candles: Sequence[Candle], bins: int = 20) -> list[VolumeBin]:
    """Distribute volume over equal-width price bins.

    Each candle contributes its whole volume to the bin holding its mid
    price ``(high + low) / 2``. Bin prices are bin centres. Returns an empty
    list for an empty series or a zero price range.
    """
    require_period("bins", bins)
    if not candles:
        return []

    min_price = min(c.low for c in candles)
    max_price = max(c.high for c in candles)
    price_range = max_price - min_price
    if price_range <= 0 or not math.isfinite(price_range):
        return []

    bin_size = price_range / bins
    volumes = [0.0] * bins
    for candle in candles:
        mid = (candle.high + candle.low) / 2
        index = min(int((mid - min_price) // bin_size), bins - 1)
        if index >= 0:
            volumes[index] += candle.volume

    return [
        VolumeBin(price=min_price + (i + 0.5) * bin_size, volume=volumes[i])
        for i in range(bins)
    ]
