from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from core.chart import PaneRegion, VolumeBar
from core.entities import Candle
from core.indicators import DerivedSeries
from core.timeframe import Timeframe
from infra.feeds import StreamDisconnect


def create_test_candles(count: int = 50, base_price: float = 100.0) -> list[Candle]:
    """Create synthetic one-minute candles for testing."""
    candles = []
    current_price = base_price
    base_time = datetime(2025, 1, 1, 9, 0)

    for i in range(count):
        # -0.5, 0, 0.5 pattern
        price_change = (i % 3 - 1) * 0.5
        current_price += price_change

        open_price = current_price
        close_price = current_price + price_change * 0.5
        high_price = max(open_price, close_price) + abs(price_change) + 0.2
        low_price = min(open_price, close_price) - abs(price_change) - 0.1
        volume = 1000 + (i % 10) * 100

        candles.append(
            Candle(
                ts=base_time + timedelta(minutes=i),
                open=open_price,
                high=high_price,
                low=low_price,
                close=close_price,
                volume=volume,
            )
        )
        current_price = close_price

    return candles


def create_trending_candles(count: int = 50, trend: str = "up") -> list[Candle]:
    """Create steadily trending one-minute candles."""
    candles = []
    current_price = 100.0
    base_time = datetime(2025, 1, 1, 9, 0)

    trend_direction = 1 if trend == "up" else -1

    for i in range(count):
        base_move = trend_direction * 0.3
        noise = (i % 5 - 2) * 0.1
        price_change = base_move + noise

        open_price = current_price
        close_price = current_price + price_change
        candles.append(
            Candle(
                ts=base_time + timedelta(minutes=i),
                open=open_price,
                high=max(open_price, close_price) + 0.1,
                low=min(open_price, close_price) - 0.1,
                close=close_price,
                volume=1000 + abs(price_change) * 500,
            )
        )
        current_price = close_price

    return candles


def candles_from_closes(
    closes: Sequence[float],
    start: datetime = datetime(2024, 1, 1),
    step: timedelta = timedelta(days=1),
    volume: float = 1000.0,
) -> list[Candle]:
    """Daily candles whose open equals the previous close."""
    candles = []
    prev = closes[0] if closes else 0.0
    for i, close in enumerate(closes):
        candles.append(
            Candle(
                ts=start + step * i,
                open=prev,
                high=max(prev, close) + 0.5,
                low=min(prev, close) - 0.5,
                close=close,
                volume=volume,
            )
        )
        prev = close
    return candles


def values(series: DerivedSeries) -> list[float | None]:
    return [p.value for p in series]


class RecordingSurface:
    """Rendering surface double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self.main: tuple[Candle, ...] = ()
        self.main_region: PaneRegion | None = None
        self.volume: tuple[VolumeBar, ...] = ()
        self.overlays: dict[str, Mapping[str, DerivedSeries]] = {}
        self.panes: dict[str, tuple[Mapping[str, DerivedSeries], PaneRegion]] = {}

    def set_main_series(self, candles: Sequence[Candle], region: PaneRegion) -> None:
        self.calls.append(("set_main_series", None))
        self.main = tuple(candles)
        self.main_region = region

    def set_volume(self, bars: Sequence[VolumeBar]) -> None:
        self.calls.append(("set_volume", None))
        self.volume = tuple(bars)

    def set_overlay(self, indicator_id: str, lines: Mapping[str, DerivedSeries]) -> None:
        self.calls.append(("set_overlay", indicator_id))
        self.overlays[indicator_id] = lines

    def remove_overlay(self, indicator_id: str) -> None:
        self.calls.append(("remove_overlay", indicator_id))
        self.overlays.pop(indicator_id, None)

    def set_oscillator_pane(
        self,
        indicator_id: str,
        lines: Mapping[str, DerivedSeries],
        region: PaneRegion,
    ) -> None:
        self.calls.append(("set_oscillator_pane", indicator_id))
        self.panes[indicator_id] = (lines, region)

    def remove_oscillator_pane(self, indicator_id: str) -> None:
        self.calls.append(("remove_oscillator_pane", indicator_id))
        self.panes.pop(indicator_id, None)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


_END = object()
_DISCONNECT = object()


class ScriptedTickStream:
    """Tick stream fed from the test with ``push``/``disconnect``/``end``/``fail``."""

    def __init__(self, symbols: Sequence[str]) -> None:
        self.symbols = list(symbols)
        self.closed = False
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, message: str | dict[str, Any]) -> None:
        self._queue.put_nowait(message)

    def disconnect(self) -> None:
        self._queue.put_nowait(_DISCONNECT)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    def fail(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    async def __aiter__(self) -> AsyncIterator[str | dict[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if item is _DISCONNECT:
                raise StreamDisconnect("scripted disconnect")
            if isinstance(item, Exception):
                raise item
            yield item

    async def aclose(self) -> None:
        self.closed = True


class ScriptedTickSource:
    """Tick source whose first ``fail_connects`` connections are refused.

    With ``drop_on_connect`` every accepted stream replays ``preload`` and
    then disconnects straight away.
    """

    def __init__(
        self,
        fail_connects: int = 0,
        drop_on_connect: bool = False,
        preload: Sequence[str | dict[str, Any]] = (),
    ) -> None:
        self.fail_connects = fail_connects
        self.drop_on_connect = drop_on_connect
        self.preload = list(preload)
        self.connect_calls: list[list[str]] = []
        self.streams: list[ScriptedTickStream] = []

    async def connect(self, symbols: Sequence[str]) -> ScriptedTickStream:
        self.connect_calls.append(list(symbols))
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise StreamDisconnect("connection refused")
        stream = ScriptedTickStream(symbols)
        for message in self.preload:
            stream.push(message)
        if self.drop_on_connect:
            stream.disconnect()
        self.streams.append(stream)
        return stream

    @property
    def current(self) -> ScriptedTickStream:
        return self.streams[-1]


class StaticHistoricalProvider:
    """Historical provider serving fixed candles per symbol."""

    def __init__(self, data: Mapping[str, list[Candle]]) -> None:
        self.data = dict(data)
        self.requests: list[tuple[str, Timeframe, date | datetime | None, date | datetime | None]] = []

    async def fetch(
        self,
        symbol: str,
        timeframe: Timeframe,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[Candle]:
        self.requests.append((symbol, timeframe, start, end))
        if symbol not in self.data:
            raise FileNotFoundError(f"No history for {symbol}")
        return list(self.data[symbol])


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
