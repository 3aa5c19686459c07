from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from core.entities import Candle
from core.indicators.base import DerivedSeries, closes, from_values, require_period
from core.indicators.moving_average import sma_values

__all__ = ["BollingerBands", "bollinger_bands"]


@dataclass(frozen=True, slots=True)
class BollingerBands:
    """Envelope around the SMA at ``mult`` population standard deviations."""

    upper: DerivedSeries
    middle: DerivedSeries
    lower: DerivedSeries

    def lines(self) -> dict[str, DerivedSeries]:
        return {"upper": self.upper, "middle": self.middle, "lower": self.lower}


def bollinger_bands(
    candles: Sequence[Candle], period: int = 20, mult: float = 2.0
) -> BollingerBands:
    """Bollinger Bands over closes.

    ``middle = SMA(period)``; the deviation is the population standard
    deviation (ddof=0) of the same window.

    Raises:
        ValueError: If ``period`` is not positive or ``mult`` is negative.
    """
    require_period("period", period)
    if mult < 0:
        raise ValueError(f"mult must be non-negative, got {mult}")

    prices = closes(candles)
    middle = sma_values(prices, period)
    upper: list[float | None] = [None] * len(prices)
    lower: list[float | None] = [None] * len(prices)

    if len(prices) >= period:
        arr = np.asarray(prices, dtype=float)
        for i in range(period - 1, len(prices)):
            mid = middle[i]
            if mid is None:
                continue
            deviation = float(np.std(arr[i - period + 1 : i + 1], ddof=0))
            upper[i] = mid + mult * deviation
            lower[i] = mid - mult * deviation

    return BollingerBands(
        upper=from_values(candles, upper),
        middle=from_values(candles, middle),
        lower=from_values(candles, lower),
    )
