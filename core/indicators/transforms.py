"""Bar-reconstruction transforms that remap the rendered candle set."""

from __future__ import annotations

from collections.abc import Sequence

from core.entities import Candle

__all__ = ["heikin_ashi"]


def heikin_ashi(candles: Sequence[Candle]) -> tuple[Candle, ...]:
    """Transform a candle series into Heikin-Ashi candles.

    The output has the same length and timestamps as the input. Volume is
    carried over unchanged. The input is not modified; callers keep the
    canonical series and render the returned one.

    Formulas:
        ha_close[i] = (open + high + low + close) / 4
        ha_open[0] = (open[0] + close[0]) / 2
        ha_open[i] = (ha_open[i - 1] + ha_close[i - 1]) / 2
        ha_high[i] = max(high[i], ha_open[i], ha_close[i])
        ha_low[i] = min(low[i], ha_open[i], ha_close[i])
    """
    result: list[Candle] = []
    prev_open: float | None = None
    prev_close: float | None = None

    for candle in candles:
        ha_close = (candle.open + candle.high + candle.low + candle.close) / 4
        if prev_open is None or prev_close is None:
            ha_open = (candle.open + candle.close) / 2
        else:
            ha_open = (prev_open + prev_close) / 2

        result.append(
            Candle(
                ts=candle.ts,
                open=ha_open,
                high=max(candle.high, ha_open, ha_close),
                low=min(candle.low, ha_open, ha_close),
                close=ha_close,
                volume=candle.volume,
            )
        )
        prev_open, prev_close = ha_open, ha_close

    return tuple(result)
