"""Canonical ordered candle series for one (symbol, timeframe) pair."""

from __future__ import annotations

import dataclasses
import logging
import math
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from core.entities import Candle
from core.timeframe import Timeframe, parse_timeframe

__all__ = ["MergeResult", "SeriesSnapshot", "StoreStats", "TimeSeriesStore"]

logger = logging.getLogger(__name__)


class MergeResult(Enum):
    """Outcome of a single store mutation."""

    UPDATED = "updated"  # Last bucket updated in place
    APPENDED = "appended"  # New bucket appended
    DROPPED_OUT_OF_ORDER = "dropped_out_of_order"
    REJECTED_MALFORMED = "rejected_malformed"

    @property
    def accepted(self) -> bool:
        return self in (MergeResult.UPDATED, MergeResult.APPENDED)


@dataclass(frozen=True, slots=True)
class SeriesSnapshot:
    """Immutable view of the series handed to readers.

    ``version`` increases on every accepted mutation and on ``replace``.
    """

    symbol: str
    timeframe: Timeframe
    candles: tuple[Candle, ...]
    version: int

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.candles)

    def __getitem__(self, index: int) -> Candle:
        return self.candles[index]

    @property
    def last(self) -> Candle | None:
        return self.candles[-1] if self.candles else None


@dataclass
class StoreStats:
    """Diagnostic counters; drops are never surfaced as errors."""

    updated: int = 0
    appended: int = 0
    dropped_out_of_order: int = 0
    rejected_malformed: int = 0
    seed_rows_dropped: int = 0

    def record(self, result: MergeResult) -> None:
        if result == MergeResult.UPDATED:
            self.updated += 1
        elif result == MergeResult.APPENDED:
            self.appended += 1
        elif result == MergeResult.DROPPED_OUT_OF_ORDER:
            self.dropped_out_of_order += 1
        else:
            self.rejected_malformed += 1


def _is_finite(*values: float) -> bool:
    return all(isinstance(v, int | float) and math.isfinite(v) for v in values)


def _match_tz(ts: datetime, reference: datetime) -> datetime:
    """Express ``ts`` in the same naive/aware form as ``reference`` (naive = UTC)."""
    if reference.tzinfo is None and ts.tzinfo is not None:
        return ts.astimezone(UTC).replace(tzinfo=None)
    if reference.tzinfo is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts


def _valid_candle(candle: Candle) -> bool:
    return (
        _is_finite(candle.open, candle.high, candle.low, candle.close, candle.volume)
        and candle.volume >= 0
        and candle.high >= candle.low
    )


@dataclass
class TimeSeriesStore:
    """Owner of the canonical candle series for the active symbol/timeframe.

    Candles are kept strictly increasing by ``ts`` with unique buckets. Live
    ticks update the last bucket in place or append a new one; ticks that
    map to an older bucket are dropped. Readers only ever see immutable
    ``SeriesSnapshot`` objects.

    Args:
        symbol: Active instrument.
        timeframe: Bucket size as ``Timeframe`` or interval string (``"1m"``).
        max_candles: Oldest candles are evicted beyond this length.

    Example:
        >>> store = TimeSeriesStore("ABC", "1m")
        >>> store.merge_tick(datetime(2024, 1, 2, 10, 0, 5), 100.0)
        <MergeResult.APPENDED: 'appended'>
        >>> store.snapshot().last.close
        100.0
    """

    symbol: str
    timeframe: Timeframe | str
    max_candles: int = 5000

    stats: StoreStats = field(default_factory=StoreStats, init=False)
    _candles: deque[Candle] = field(init=False, repr=False)
    _version: int = field(default=0, init=False)
    _snapshot: SeriesSnapshot | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_candles <= 0:
            raise ValueError("max_candles must be positive")
        self.timeframe = parse_timeframe(self.timeframe)
        self._candles = deque(maxlen=self.max_candles)

    @property
    def version(self) -> int:
        return self._version

    @property
    def interval(self) -> Timeframe:
        assert isinstance(self.timeframe, Timeframe)  # normalised in __post_init__
        return self.timeframe

    def __len__(self) -> int:
        return len(self._candles)

    def _touch(self) -> None:
        self._version += 1
        self._snapshot = None

    def replace(
        self,
        candles: Iterable[Candle],
        symbol: str | None = None,
        timeframe: Timeframe | str | None = None,
    ) -> SeriesSnapshot:
        """Swap the whole series, optionally for a new symbol/timeframe.

        Rows that are not finite or that would break strict ordering are
        dropped and counted in ``stats.seed_rows_dropped``; the remaining
        series is always valid.
        """
        if symbol is not None:
            self.symbol = symbol
        if timeframe is not None:
            self.timeframe = parse_timeframe(timeframe)

        accepted: deque[Candle] = deque(maxlen=self.max_candles)
        dropped = 0
        for candle in candles:
            if not _valid_candle(candle):
                dropped += 1
                continue
            if accepted and candle.ts <= accepted[-1].ts:
                dropped += 1
                continue
            accepted.append(candle)

        if dropped:
            logger.warning(
                f"{self.symbol}: dropped {dropped} invalid or unordered seed candles"
            )
        self.stats = StoreStats(seed_rows_dropped=dropped)
        self._candles = accepted
        self._touch()
        logger.info(
            f"{self.symbol} {self.interval.name}: series replaced "
            f"({len(accepted)} candles, version {self._version})"
        )
        return self.snapshot()

    def merge_tick(
        self, time_raw: datetime, price: float, volume_delta: float = 0.0
    ) -> MergeResult:
        """Merge one live price into the series.

        The tick's bucket is computed for the active timeframe:
        same bucket as the last candle updates it in place (O(1)), a later
        bucket appends ``open=high=low=close=price``, an earlier bucket is
        dropped.
        """
        if not _is_finite(price, volume_delta) or volume_delta < 0:
            result = MergeResult.REJECTED_MALFORMED
            self.stats.record(result)
            logger.debug(f"{self.symbol}: rejected malformed tick price={price!r}")
            return result

        last = self._candles[-1] if self._candles else None
        if last is not None:
            time_raw = _match_tz(time_raw, last.ts)
        bucket = self.interval.bucket_start(time_raw)

        if last is not None and bucket == last.ts:
            self._candles[-1] = dataclasses.replace(
                last,
                high=max(last.high, price),
                low=min(last.low, price),
                close=price,
                volume=last.volume + volume_delta,
            )
            result = MergeResult.UPDATED
        elif last is None or bucket > last.ts:
            self._candles.append(
                Candle(
                    ts=bucket,
                    open=price,
                    high=price,
                    low=price,
                    close=price,
                    volume=volume_delta,
                )
            )
            result = MergeResult.APPENDED
        else:
            result = MergeResult.DROPPED_OUT_OF_ORDER
            logger.debug(
                f"{self.symbol}: dropped late tick for bucket {bucket} "
                f"(last {last.ts})"
            )

        self.stats.record(result)
        if result.accepted:
            self._touch()
        return result

    def append(self, candle: Candle) -> MergeResult:
        """Merge a completed bar from a provider.

        A bar for the last bucket replaces it, a later bar is appended and an
        earlier one is dropped.
        """
        if self._candles:
            candle = dataclasses.replace(
                candle, ts=_match_tz(candle.ts, self._candles[-1].ts)
            )

        if not _valid_candle(candle):
            result = MergeResult.REJECTED_MALFORMED
        elif not self._candles or candle.ts > self._candles[-1].ts:
            self._candles.append(candle)
            result = MergeResult.APPENDED
        elif candle.ts == self._candles[-1].ts:
            self._candles[-1] = candle
            result = MergeResult.UPDATED
        else:
            result = MergeResult.DROPPED_OUT_OF_ORDER

        self.stats.record(result)
        if result.accepted:
            self._touch()
        return result

    def snapshot(self) -> SeriesSnapshot:
        """Immutable view of the current series, cached per version."""
        if self._snapshot is None:
            self._snapshot = SeriesSnapshot(
                symbol=self.symbol,
                timeframe=self.interval,
                candles=tuple(self._candles),
                version=self._version,
            )
        return self._snapshot

    def candles(self) -> Sequence[Candle]:
        return self.snapshot().candles
