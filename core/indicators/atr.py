from __future__ import annotations

from collections.abc import Sequence

from core.entities import Candle
from core.indicators.base import DerivedSeries, from_values
from core.indicators.moving_average import sma_values

__all__ = ["true_range", "atr"]


def true_range(candles: Sequence[Candle]) -> list[float]:
    """True Range per candle.

    ``max(high - low, |high - prev_close|, |low - prev_close|)``; the first
    candle has no previous close so its range is ``high - low``.
    """
    ranges: list[float] = []
    prev_close: float | None = None
    for candle in candles:
        if prev_close is None:
            ranges.append(candle.high - candle.low)
        else:
            ranges.append(
                max(
                    candle.high - candle.low,
                    abs(candle.high - prev_close),
                    abs(candle.low - prev_close),
                )
            )
        prev_close = candle.close
    return ranges


def atr(candles: Sequence[Candle], period: int = 14) -> DerivedSeries:
    """Average True Range as the simple average of the last ``period`` true ranges.

    Example:
        >>> series = atr(candles, period=14)
        >>> volatility = series[-1].value  # None until 14 candles exist
    """
    return from_values(candles, sma_values(true_range(candles), period))
