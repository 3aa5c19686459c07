"""Contract of the external rendering surface the composer pushes into."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

from core.chart.frame import VolumeBar
from core.chart.layout import PaneRegion
from core.entities import Candle
from core.indicators.base import DerivedSeries

__all__ = ["RenderSurface"]


class RenderSurface(Protocol):
    """Charting surface that draws series; it never owns chart state."""

    def set_main_series(self, candles: Sequence[Candle], region: PaneRegion) -> None: ...

    def set_volume(self, bars: Sequence[VolumeBar]) -> None: ...

    def set_overlay(self, indicator_id: str, lines: Mapping[str, DerivedSeries]) -> None: ...

    def remove_overlay(self, indicator_id: str) -> None: ...

    def set_oscillator_pane(
        self,
        indicator_id: str,
        lines: Mapping[str, DerivedSeries],
        region: PaneRegion,
    ) -> None: ...

    def remove_oscillator_pane(self, indicator_id: str) -> None: ...
