"""Pixel <-> domain coordinate conversion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from core.annotations.models import Point

__all__ = ["CoordinateMapper", "LinearViewport", "to_domain"]


class CoordinateMapper(Protocol):
    """Scale functions owned by the rendering surface.

    Each method returns ``None`` when the coordinate falls outside the
    surface's current scale.
    """

    def y_to_price(self, y: float) -> float | None: ...

    def price_to_y(self, price: float) -> float | None: ...

    def x_to_time(self, x: float) -> datetime | None: ...

    def time_to_x(self, ts: datetime) -> float | None: ...


def to_domain(mapper: CoordinateMapper, x: float, y: float) -> Point | None:
    """Convert a pointer position to a (time, price) point, or None if off-scale."""
    ts = mapper.x_to_time(x)
    price = mapper.y_to_price(y)
    if ts is None or price is None:
        return None
    return Point(ts, price)


@dataclass(frozen=True)
class LinearViewport:
    """Linear time and price scale over a ``width`` x ``height`` pixel area.

    Pixel y grows downward, so ``price_high`` sits at y = 0.
    """

    start: datetime
    end: datetime
    price_low: float
    price_high: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("Viewport end must be after start")
        if self.price_high <= self.price_low:
            raise ValueError("Viewport price_high must be above price_low")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Viewport size must be positive")

    @property
    def _span_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def y_to_price(self, y: float) -> float | None:
        if not 0 <= y <= self.height:
            return None
        frac = y / self.height
        return self.price_high - frac * (self.price_high - self.price_low)

    def price_to_y(self, price: float) -> float | None:
        if not self.price_low <= price <= self.price_high:
            return None
        frac = (self.price_high - price) / (self.price_high - self.price_low)
        return frac * self.height

    def x_to_time(self, x: float) -> datetime | None:
        if not 0 <= x <= self.width:
            return None
        return self.start + timedelta(seconds=self._span_seconds * x / self.width)

    def time_to_x(self, ts: datetime) -> float | None:
        if not self.start <= ts <= self.end:
            return None
        return (ts - self.start).total_seconds() / self._span_seconds * self.width
