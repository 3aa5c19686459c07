from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from core.chart.config import DisplayMode
from core.chart.layout import PaneRegion
from core.entities import Candle
from core.indicators.base import DerivedSeries

__all__ = ["VolumeBar", "OverlaySeries", "OscillatorPane", "ChartFrame"]


@dataclass(frozen=True, slots=True)
class VolumeBar:
    ts: datetime
    value: float
    rising: bool  # close >= open


@dataclass(frozen=True, slots=True)
class OverlaySeries:
    """Indicator lines drawn on the main price axis."""

    indicator_id: str
    name: str
    lines: Mapping[str, DerivedSeries]


@dataclass(frozen=True, slots=True)
class OscillatorPane:
    """Indicator lines drawn in their own vertical sub-region."""

    indicator_id: str
    name: str
    lines: Mapping[str, DerivedSeries]
    region: PaneRegion
    value_range: tuple[float, float] | None = None


@dataclass(frozen=True)
class ChartFrame:
    """Everything the renderer needs for one recompute.

    A frame is never modified after it is built; the next recompute produces
    a new frame.
    """

    symbol: str
    display_mode: DisplayMode
    source_version: int
    main_series: tuple[Candle, ...]
    main_region: PaneRegion
    volume: tuple[VolumeBar, ...]
    overlays: Mapping[str, OverlaySeries]
    oscillators: Mapping[str, OscillatorPane]

    @property
    def pane_count(self) -> int:
        return 1 + len(self.oscillators)
