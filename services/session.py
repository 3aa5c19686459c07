"""
Chart session orchestration.

Wires one time-series store, one live merge adapter, one chart composer and
one annotation manager together and reacts to "active symbol changed"
notifications by tearing everything down and reinitialising it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date

from core.annotations import AnnotationManager, JsonFileAnnotationStore
from core.chart import ChartComposer, ChartFrame, DisplayMode, IndicatorSet, RenderSurface
from core.entities import ConnectionState
from core.series_store import TimeSeriesStore
from core.timeframe import Timeframe, parse_timeframe, range_for_timeframe
from infra.feeds import (
    DrainStats,
    HistoricalProvider,
    LiveMergeAdapter,
    TickSource,
    WebSocketTickSource,
)

from .config import ChartDefaults, ChartSettings
from .data_loader import CsvHistoricalProvider

__all__ = ["ChartSession"]

logger = logging.getLogger(__name__)


class ChartSession:
    """A single chart bound to one active symbol at a time.

    Args:
        provider: Historical candle source used to seed the store.
        annotations: Annotation manager for the chart.
        adapter: Live merge adapter; ``None`` for a history-only chart.
        defaults: Initial timeframe, range, display mode and indicators.
        surface: Optional rendering surface the composer pushes into.
        today: Fixed "today" for range computation (tests).

    Example:
        >>> session = ChartSession.from_settings(load_settings("configs/chart.yaml"))
        >>> await session.activate_symbol("AAPL")
        >>> session.pump()  # merge queued ticks, recompute if needed
        >>> await session.close()
    """

    def __init__(
        self,
        provider: HistoricalProvider,
        annotations: AnnotationManager,
        adapter: LiveMergeAdapter | None = None,
        defaults: ChartDefaults | None = None,
        surface: RenderSurface | None = None,
        today: date | None = None,
    ) -> None:
        defaults = defaults or ChartDefaults()
        self.provider = provider
        self.annotations = annotations
        self.adapter = adapter
        self.chart_range = defaults.chart_range
        self.timeframe: Timeframe = defaults.interval
        self._today = today

        self.store = TimeSeriesStore("", self.timeframe, defaults.max_candles)
        self.indicators = IndicatorSet(enabled=defaults.indicators)
        self.composer = ChartComposer(
            self.store,
            self.indicators,
            surface=surface,
            display_mode=defaults.display_mode,
            oscillator_pane_height=defaults.oscillator_pane_height,
            min_main_height=defaults.min_main_height,
        )
        self.last_drain = DrainStats()
        self._symbol: str | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: ChartSettings,
        provider: HistoricalProvider | None = None,
        source: TickSource | None = None,
        surface: RenderSurface | None = None,
        live: bool = True,
    ) -> ChartSession:
        adapter = None
        if live:
            adapter = LiveMergeAdapter(
                source or WebSocketTickSource(settings.stream.ws_url),
                policy=settings.stream.reconnect_policy(),
                queue_maxsize=settings.stream.queue_maxsize,
            )
        return cls(
            provider=provider or CsvHistoricalProvider(settings.data_dir),
            annotations=AnnotationManager(
                JsonFileAnnotationStore(settings.annotation_store_path)
            ),
            adapter=adapter,
            defaults=settings.chart,
            surface=surface,
        )

    @property
    def symbol(self) -> str | None:
        return self._symbol

    @property
    def frame(self) -> ChartFrame | None:
        return self.composer.last_frame

    @property
    def connection_state(self) -> ConnectionState:
        return self.adapter.state if self.adapter else ConnectionState.CLOSED

    # ------------------------------------------------------------------
    # Symbol / timeframe changes
    # ------------------------------------------------------------------

    async def activate_symbol(self, symbol: str) -> ChartFrame:
        """Switch the chart to ``symbol``.

        History and annotations for the new symbol are loaded first; a
        failure there leaves the current chart and its stream untouched.
        Only then is the old stream unsubscribed, the store replaced, the
        new stream subscribed and the chart recomputed.
        """
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")

        async with self._lock:
            started = time.perf_counter()
            window = range_for_timeframe(self.chart_range, today=self._today)
            candles = await self.provider.fetch(
                symbol, self.timeframe, window.start_date, window.end_date
            )
            self.annotations.activate(symbol)

            if self.adapter is not None:
                await self.adapter.unsubscribe()
            self.store.replace(candles, symbol=symbol, timeframe=self.timeframe)
            self._symbol = symbol
            if self.adapter is not None:
                await self.adapter.subscribe(symbol)
            frame = self.composer.compose()

            logger.info(
                f"Activated {symbol} {self.timeframe.name} ({len(candles)} candles) "
                f"in {(time.perf_counter() - started) * 1000:.0f}ms"
            )
            return frame

    async def _reload(self) -> ChartFrame | None:
        if self._symbol is None:
            return None
        return await self.activate_symbol(self._symbol)

    async def set_timeframe(self, timeframe: str | Timeframe) -> ChartFrame | None:
        previous = self.timeframe
        self.timeframe = parse_timeframe(timeframe)
        try:
            return await self._reload()
        except Exception:
            self.timeframe = previous
            raise

    async def set_chart_range(self, chart_range: str) -> ChartFrame | None:
        """Select a history window; the interval follows the window."""
        window = range_for_timeframe(chart_range.upper(), today=self._today)
        previous = (self.chart_range, self.timeframe)
        self.chart_range = chart_range.upper()
        self.timeframe = window.interval
        try:
            return await self._reload()
        except Exception:
            self.chart_range, self.timeframe = previous
            raise

    # ------------------------------------------------------------------
    # Configuration changes
    # ------------------------------------------------------------------

    def set_display_mode(self, mode: DisplayMode | str) -> ChartFrame | None:
        self.composer.set_display_mode(mode)
        return self.composer.refresh()

    def toggle_indicator(self, indicator_id: str) -> bool:
        enabled = self.indicators.toggle(indicator_id)
        self.composer.refresh()
        return enabled

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def pump(self) -> ChartFrame | None:
        """Merge queued ticks and recompute if anything changed."""
        if self.adapter is not None:
            self.last_drain = self.adapter.drain(self.store)
        return self.composer.refresh()

    async def run(self, duration: float, poll_interval: float = 0.25) -> int:
        """Pump ticks for ``duration`` seconds; returns the number of recomputes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        recomputes = 0
        while (remaining := deadline - loop.time()) > 0:
            if self.adapter is not None:
                await self.adapter.wait_for_tick(timeout=min(poll_interval, remaining))
            else:
                await asyncio.sleep(min(poll_interval, remaining))
            if self.pump() is not None:
                recomputes += 1
        return recomputes

    async def close(self) -> None:
        if self.adapter is not None:
            await self.adapter.close()
        self.composer.clear()
        self._symbol = None
        logger.info("Chart session closed")

    async def __aenter__(self) -> ChartSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
