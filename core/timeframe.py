"""Timeframe utilities: bucket alignment and chart range mapping."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta
from typing import NamedTuple

__all__ = [
    "Timeframe",
    "TimeframeConfig",
    "ChartRange",
    "parse_timeframe",
    "get_bucket_start",
    "range_for_timeframe",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
# First Monday after the epoch; week buckets open on Monday 00:00 UTC
_WEEK_ORIGIN = datetime(1970, 1, 5, tzinfo=UTC)
_WEEK_MINUTES = 10080

_UNIT_MINUTES = {
    "m": 1,
    "h": 60,
    "d": 1440,
    "w": _WEEK_MINUTES,
}

_TIMEFRAME_PATTERN = re.compile(r"^\s*(\d+)\s*([mMhHdDwW])\s*$")


def _epoch_seconds(timestamp: datetime) -> int:
    """Whole seconds since the epoch, naive timestamps read as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return int((timestamp - _EPOCH).total_seconds() // 1)


class Timeframe(NamedTuple):
    """Fixed-duration candle bucket."""

    minutes: int
    name: str

    @property
    def seconds(self) -> int:
        """Total seconds in this timeframe period."""
        return self.minutes * 60

    @property
    def origin(self) -> datetime:
        """Instant the bucket grid is anchored to.

        Whole-week timeframes start on Monday; everything else is cut from the
        Unix epoch.
        """
        if self.minutes % _WEEK_MINUTES == 0:
            return _WEEK_ORIGIN
        return _EPOCH

    def bucket_id(self, timestamp: datetime) -> int:
        """Get bucket ID for timestamp by dividing the offset from ``origin``.

        Naive timestamps are treated as UTC so that bucket boundaries do not
        depend on the host timezone.

        Example:
            >>> m1 = Timeframe(1, "M1")
            >>> m1.bucket_id(datetime(1970, 1, 1, 0, 2, 30))
            2
        """
        offset = int((self.origin - _EPOCH).total_seconds())
        return (_epoch_seconds(timestamp) - offset) // self.seconds

    def bucket_start(self, timestamp: datetime) -> datetime:
        """Start of the bucket containing ``timestamp``.

        The result keeps the naive/aware form of the input.

        Example:
            >>> h1 = Timeframe(60, "H1")
            >>> h1.bucket_start(datetime(2024, 1, 1, 10, 30))
            datetime.datetime(2024, 1, 1, 10, 0)
        """
        start = self.origin + timedelta(seconds=self.bucket_id(timestamp) * self.seconds)
        if timestamp.tzinfo is None:
            return start.replace(tzinfo=None)
        return start.astimezone(timestamp.tzinfo)

    def __str__(self) -> str:
        return f"{self.name}({self.minutes} min)"


class TimeframeConfig:
    """Standard timeframe configurations."""

    M1 = Timeframe(1, "M1")
    M5 = Timeframe(5, "M5")
    M15 = Timeframe(15, "M15")
    M30 = Timeframe(30, "M30")
    H1 = Timeframe(60, "H1")
    H4 = Timeframe(240, "H4")
    D1 = Timeframe(1440, "D1")
    W1 = Timeframe(10080, "W1")


def format_timeframe_name(tf_minutes: int) -> str:
    """Format timeframe minutes into standard name (M15, H4, D1, W1)."""
    if tf_minutes < 60:
        return f"M{tf_minutes}"
    elif tf_minutes < 1440:
        return f"H{tf_minutes // 60}"
    elif tf_minutes < 10080:
        return f"D{tf_minutes // 1440}"
    else:
        return f"W{tf_minutes // 10080}"


def parse_timeframe(value: str | Timeframe) -> Timeframe:
    """Parse an interval string such as ``"1m"``, ``"15m"``, ``"4h"``, ``"1D"``.

    Raises:
        ValueError: If the string is not a positive fixed-duration interval.
    """
    if isinstance(value, Timeframe):
        return value

    match = _TIMEFRAME_PATTERN.match(value)
    if match is None:
        raise ValueError(
            f"Invalid timeframe '{value}'. Expected e.g. '1m', '15m', '1h', '1D', '1W'"
        )

    count = int(match.group(1))
    if count <= 0:
        raise ValueError(f"Timeframe must be positive, got '{value}'")

    minutes = count * _UNIT_MINUTES[match.group(2).lower()]
    return Timeframe(minutes, format_timeframe_name(minutes))


def get_bucket_start(timestamp: datetime, timeframe: str | Timeframe) -> datetime:
    """Start timestamp of the bucket containing ``timestamp``."""
    return parse_timeframe(timeframe).bucket_start(timestamp)


class ChartRange(NamedTuple):
    """Date window and candle interval for a chart range selector."""

    start_date: date
    end_date: date
    interval: Timeframe


def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp to the last valid day of the target month
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, candidate)
        except ValueError:
            continue
    raise ValueError(f"Cannot shift {day} back by {months} months")


def range_for_timeframe(chart_range: str, today: date | None = None) -> ChartRange:
    """Map a chart range selector (``1D``, ``5D``, ``1M`` ... ``ALL``) to a fetch window.

    Unknown selectors fall back to one year of daily candles.
    """
    end = today or datetime.now(UTC).date()

    if chart_range == "1D":
        return ChartRange(end - timedelta(days=1), end, TimeframeConfig.M1)
    if chart_range == "5D":
        return ChartRange(end - timedelta(days=5), end, TimeframeConfig.M15)
    if chart_range == "1M":
        return ChartRange(_months_back(end, 1), end, TimeframeConfig.D1)
    if chart_range == "3M":
        return ChartRange(_months_back(end, 3), end, TimeframeConfig.D1)
    if chart_range == "6M":
        return ChartRange(_months_back(end, 6), end, TimeframeConfig.D1)
    if chart_range == "5Y":
        return ChartRange(_months_back(end, 60), end, TimeframeConfig.W1)
    if chart_range == "ALL":
        return ChartRange(date(2000, 1, 1), end, TimeframeConfig.W1)
    return ChartRange(_months_back(end, 12), end, TimeframeConfig.D1)
