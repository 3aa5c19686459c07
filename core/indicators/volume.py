"""Volume-based indicators."""

from __future__ import annotations

from collections.abc import Sequence

from core.entities import Candle
from core.indicators.base import DerivedSeries, from_values
from core.indicators.moving_average import sma_values

__all__ = ["obv", "volume_sma"]


def obv(candles: Sequence[Candle]) -> DerivedSeries:
    """On-Balance Volume.

    Starts at the first candle's volume; each later candle adds its volume on
    an up-close, subtracts it on a down-close and leaves the total unchanged
    on a flat close. Defined from the first bar, so there is no warm-up.
    """
    values: list[float | None] = []
    running = 0.0
    for i, candle in enumerate(candles):
        if i == 0:
            running = candle.volume
        else:
            change = candle.close - candles[i - 1].close
            if change > 0:
                running += candle.volume
            elif change < 0:
                running -= candle.volume
        values.append(running)
    return from_values(candles, values)


def volume_sma(candles: Sequence[Candle], period: int = 20) -> DerivedSeries:
    """Simple Moving Average of volume.

    Used to identify above/below average volume conditions.

    Example:
        >>> avg = volume_sma(candles, period=20)
        >>> is_high_volume = candles[-1].volume > (avg[-1].value or 0) * 1.5
    """
    return from_values(candles, sma_values([c.volume for c in candles], period))
