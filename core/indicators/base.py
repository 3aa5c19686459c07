from __future__ import annotations

import math
from collections.abc import Sequence

from core.entities import Candle, DerivedPoint

__all__ = [
    "DerivedSeries",
    "from_values",
    "closes",
    "require_period",
]

# Index-aligned with the source series; tuples so consumers cannot mutate them.
DerivedSeries = tuple[DerivedPoint, ...]


def require_period(name: str, value: int) -> int:
    """Fail fast on a non-positive or non-integer window length."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def from_values(
    candles: Sequence[Candle], values: Sequence[float | None]
) -> DerivedSeries:
    """Zip kernel values back onto candle timestamps.

    Non-finite values are reported as absent.
    """
    return tuple(
        DerivedPoint(c.ts, v if v is not None and math.isfinite(v) else None)
        for c, v in zip(candles, values, strict=True)
    )


def closes(candles: Sequence[Candle]) -> list[float]:
    return [c.close for c in candles]
