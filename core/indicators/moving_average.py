from __future__ import annotations

import math
from collections.abc import Sequence

from core.entities import Candle
from core.indicators.base import (
    DerivedSeries,
    closes,
    from_values,
    require_period,
)

__all__ = ["sma", "ema", "sma_values", "ema_values"]


def _leading_absent(values: Sequence[float | None]) -> int:
    for i, v in enumerate(values):
        if v is not None:
            return i
    return len(values)


def sma_values(values: Sequence[float | None], period: int) -> list[float | None]:
    """Rolling arithmetic mean over raw values.

    Leading absent values (the warm-up of an upstream indicator) shift the
    first output index; the window never spans an absent value.
    """
    require_period("period", period)
    out: list[float | None] = [None] * len(values)
    start = _leading_absent(values)

    for i in range(start + period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        if any(v is None for v in window):
            continue
        out[i] = math.fsum(window) / period  # type: ignore[arg-type]
    return out


def ema_values(values: Sequence[float | None], period: int) -> list[float | None]:
    """Exponential moving average seeded with the SMA of the first window.

    ``EMA[seed] = SMA(period)`` and afterwards
    ``EMA[i] = x[i] * k + EMA[i - 1] * (1 - k)`` with ``k = 2 / (period + 1)``.
    """
    require_period("period", period)
    out: list[float | None] = [None] * len(values)
    start = _leading_absent(values)
    seed = start + period - 1
    if seed >= len(values):
        return out

    window = values[start : seed + 1]
    if any(v is None for v in window):
        return out

    k = 2 / (period + 1)
    prev = math.fsum(window) / period  # type: ignore[arg-type]
    out[seed] = prev
    for i in range(seed + 1, len(values)):
        x = values[i]
        if x is None:
            break
        prev = x * k + prev * (1 - k)
        out[i] = prev
    return out


def sma(candles: Sequence[Candle], period: int = 20) -> DerivedSeries:
    """Simple moving average of closes.

    Absent for indices below ``period - 1``.

    Example:
        >>> series = sma(candles, period=20)
        >>> series[19].value  # mean of the first 20 closes
    """
    return from_values(candles, sma_values(closes(candles), period))


def ema(candles: Sequence[Candle], period: int = 12) -> DerivedSeries:
    """Exponential moving average of closes, seeded with the SMA at ``period - 1``."""
    return from_values(candles, ema_values(closes(candles), period))
