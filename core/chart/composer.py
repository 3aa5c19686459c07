"""Chart composition: price series, overlays and oscillator panes per recompute."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType

from core.chart.config import DisplayMode, IndicatorConfig, IndicatorSet
from core.chart.frame import ChartFrame, OscillatorPane, OverlaySeries, VolumeBar
from core.chart.layout import PaneRegion, compute_layout
from core.chart.surface import RenderSurface
from core.entities import Candle
from core.indicators.transforms import heikin_ashi
from core.series_store import TimeSeriesStore

__all__ = ["ChartComposer"]

logger = logging.getLogger(__name__)


@dataclass
class _ArenaEntry:
    """Surface handle bookkeeping for one indicator id."""

    config: IndicatorConfig
    region: PaneRegion | None = None  # None for overlays


class ChartComposer:
    """Derives everything drawn on the chart from the store and indicator set.

    Recompute is always a full recompute: kernels are defined over the whole
    series and series lengths are bounded. ``refresh()`` is the dependency
    check called after every store mutation or config change; it only
    recomputes when the store version, the enabled set, the display mode or
    the symbol changed since the last frame.

    Surface handles are tracked in an arena keyed by indicator id. On each
    recompute, entries for ids no longer enabled are dropped (and removed
    from the surface) and entries for newly enabled ids are inserted.

    Example:
        >>> composer = ChartComposer(store, IndicatorSet(enabled=["sma20", "rsi"]))
        >>> frame = composer.compose()
        >>> frame.oscillators["rsi"].region
        PaneRegion(top=0.8, bottom=1.0)
    """

    def __init__(
        self,
        store: TimeSeriesStore,
        indicators: IndicatorSet | None = None,
        surface: RenderSurface | None = None,
        display_mode: DisplayMode = DisplayMode.CANDLESTICK,
        oscillator_pane_height: float = 0.2,
        min_main_height: float = 0.4,
    ) -> None:
        self.store = store
        self.indicators = indicators or IndicatorSet()
        self.surface = surface
        self._display_mode = display_mode
        self._pane_height = oscillator_pane_height
        self._min_main_height = min_main_height

        self._arena: dict[str, _ArenaEntry] = {}
        self._last_key: tuple[object, ...] | None = None
        self._main_key: tuple[object, ...] | None = None
        self._frame: ChartFrame | None = None

    @property
    def display_mode(self) -> DisplayMode:
        return self._display_mode

    def set_display_mode(self, mode: DisplayMode | str) -> None:
        self._display_mode = DisplayMode(mode)

    @property
    def last_frame(self) -> ChartFrame | None:
        return self._frame

    @property
    def arena_ids(self) -> list[str]:
        return list(self._arena)

    def _dependency_key(self) -> tuple[object, ...]:
        return (
            self.store.symbol,
            self.store.version,
            self.indicators.version,
            self._display_mode,
        )

    def refresh(self) -> ChartFrame | None:
        """Recompute if any dependency changed; returns the new frame or None."""
        if self._frame is not None and self._dependency_key() == self._last_key:
            return None
        return self.compose()

    def compose(self) -> ChartFrame:
        """Unconditional full recompute."""
        started = time.perf_counter()
        snapshot = self.store.snapshot()
        candles = snapshot.candles

        if self._display_mode.transforms_data:
            main_series: tuple[Candle, ...] = heikin_ashi(candles)
        else:
            main_series = candles

        volume = tuple(
            VolumeBar(c.ts, c.volume, c.close >= c.open) for c in main_series
        )

        overlay_configs = self.indicators.enabled_overlays()
        oscillator_configs = self.indicators.enabled_oscillators()
        layout = compute_layout(
            [c.id for c in oscillator_configs],
            pane_height=self._pane_height,
            min_main_height=self._min_main_height,
        )

        # Indicators always read the canonical series, never the remapped one
        overlays = {
            c.id: OverlaySeries(
                c.id, c.name, MappingProxyType(c.bound.compute(candles))
            )
            for c in overlay_configs
        }
        oscillators = {
            c.id: OscillatorPane(
                c.id,
                c.name,
                MappingProxyType(c.bound.compute(candles)),
                layout.oscillators[c.id],
                c.value_range,
            )
            for c in oscillator_configs
        }

        frame = ChartFrame(
            symbol=snapshot.symbol,
            display_mode=self._display_mode,
            source_version=snapshot.version,
            main_series=main_series,
            main_region=layout.main,
            volume=volume,
            overlays=MappingProxyType(overlays),
            oscillators=MappingProxyType(oscillators),
        )

        self._sync_arena(frame)
        self._push_main(frame)
        self._frame = frame
        self._last_key = self._dependency_key()

        logger.debug(
            f"{snapshot.symbol}: recomputed {len(candles)} candles, "
            f"{len(overlays)} overlays, {len(oscillators)} oscillators "
            f"in {(time.perf_counter() - started) * 1000:.1f}ms"
        )
        return frame

    def _sync_arena(self, frame: ChartFrame) -> None:
        wanted = set(frame.overlays) | set(frame.oscillators)

        for indicator_id in [i for i in self._arena if i not in wanted]:
            entry = self._arena.pop(indicator_id)
            if self.surface is None:
                continue
            if entry.region is None:
                self.surface.remove_overlay(indicator_id)
            else:
                self.surface.remove_oscillator_pane(indicator_id)

        for indicator_id, overlay in frame.overlays.items():
            self._arena[indicator_id] = _ArenaEntry(self.indicators.get(indicator_id))
            if self.surface is not None:
                self.surface.set_overlay(indicator_id, overlay.lines)

        for indicator_id, pane in frame.oscillators.items():
            self._arena[indicator_id] = _ArenaEntry(
                self.indicators.get(indicator_id), pane.region
            )
            if self.surface is not None:
                self.surface.set_oscillator_pane(indicator_id, pane.lines, pane.region)

    def _push_main(self, frame: ChartFrame) -> None:
        key = (frame.symbol, frame.source_version, frame.display_mode, frame.main_region)
        if key == self._main_key:
            return
        self._main_key = key
        if self.surface is not None:
            self.surface.set_main_series(frame.main_series, frame.main_region)
            self.surface.set_volume(frame.volume)

    def clear(self) -> None:
        """Drop every arena entry, e.g. when the chart is unmounted."""
        if self.surface is not None:
            for indicator_id, entry in self._arena.items():
                if entry.region is None:
                    self.surface.remove_overlay(indicator_id)
                else:
                    self.surface.remove_oscillator_pane(indicator_id)
        self._arena.clear()
        self._frame = None
        self._last_key = None
        self._main_key = None
