"""Bounded-range and momentum oscillators (RSI, MACD, Stochastic)."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from core.entities import Candle
from core.indicators.base import (
    DerivedSeries,
    closes,
    from_values,
    require_period,
)
from core.indicators.moving_average import ema_values, sma_values

__all__ = ["MACDResult", "StochasticResult", "rsi", "macd", "stochastic"]


@dataclass(frozen=True, slots=True)
class MACDResult:
    """MACD bundle rendered together in one oscillator pane."""

    macd_line: DerivedSeries
    signal_line: DerivedSeries
    histogram: DerivedSeries

    def lines(self) -> dict[str, DerivedSeries]:
        return {
            "macd": self.macd_line,
            "signal": self.signal_line,
            "histogram": self.histogram,
        }


@dataclass(frozen=True, slots=True)
class StochasticResult:
    k_line: DerivedSeries
    d_line: DerivedSeries

    def lines(self) -> dict[str, DerivedSeries]:
        return {"k": self.k_line, "d": self.d_line}


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    value = 100.0 - 100.0 / (1.0 + rs)
    return min(100.0, max(0.0, value))


def rsi(candles: Sequence[Candle], period: int = 14) -> DerivedSeries:
    """Relative Strength Index with Wilder smoothing.

    The first ``period`` bars are absent; the first value sits at index
    ``period`` and uses the plain average of the first ``period`` changes.
    Afterwards averages are smoothed as ``(prev * (period - 1) + x) / period``.
    An average loss of zero yields 100.
    """
    require_period("period", period)
    prices = closes(candles)
    out: list[float | None] = [None] * len(prices)
    if len(prices) <= period:
        return from_values(candles, out)

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = prices[i] - prices[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    out[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, len(prices)):
        change = prices[i] - prices[i - 1]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        out[i] = _rsi_from_averages(avg_gain, avg_loss)

    return from_values(candles, out)


def macd(
    candles: Sequence[Candle], fast: int = 12, slow: int = 26, signal: int = 9
) -> MACDResult:
    """Moving Average Convergence Divergence.

    ``macd = EMA(fast) - EMA(slow)``, ``signal = EMA(signal)`` of the MACD
    line and ``histogram = macd - signal``. Each output is absent wherever one
    of its inputs is absent.

    Raises:
        ValueError: If a period is not positive or ``fast >= slow``.
    """
    require_period("fast", fast)
    require_period("slow", slow)
    require_period("signal", signal)
    if fast >= slow:
        raise ValueError(f"fast period ({fast}) must be shorter than slow ({slow})")

    prices = closes(candles)
    fast_ema = ema_values(prices, fast)
    slow_ema = ema_values(prices, slow)

    macd_line: list[float | None] = [
        f - s if f is not None and s is not None else None
        for f, s in zip(fast_ema, slow_ema, strict=True)
    ]
    signal_line = ema_values(macd_line, signal)
    histogram: list[float | None] = [
        m - s if m is not None and s is not None else None
        for m, s in zip(macd_line, signal_line, strict=True)
    ]

    return MACDResult(
        macd_line=from_values(candles, macd_line),
        signal_line=from_values(candles, signal_line),
        histogram=from_values(candles, histogram),
    )


def stochastic(
    candles: Sequence[Candle], k_period: int = 14, d_period: int = 3
) -> StochasticResult:
    """Stochastic oscillator: %K over ``k_period`` bars and %D as its SMA.

    A flat window (highest high equal to lowest low) reports 50.
    """
    require_period("k_period", k_period)
    require_period("d_period", d_period)

    k_values: list[float | None] = [None] * len(candles)
    for i in range(k_period - 1, len(candles)):
        window = candles[i - k_period + 1 : i + 1]
        lowest = min(c.low for c in window)
        highest = max(c.high for c in window)
        span = highest - lowest
        if span == 0:
            k_values[i] = 50.0
        else:
            k_values[i] = (candles[i].close - lowest) / span * 100.0

    d_values = sma_values(k_values, d_period)
    return StochasticResult(
        k_line=from_values(candles, k_values),
        d_line=from_values(candles, d_values),
    )
