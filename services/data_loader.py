"""
Historical candle loading from CSV/Parquet files.

Files are read with pandas, column names are normalised, rows are sorted
and de-duplicated, and the result can be resampled to a coarser interval
before being handed to the time-series store.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from core.entities import Candle
from core.timeframe import Timeframe, parse_timeframe

__all__ = [
    "load_market_data",
    "validate_market_data",
    "resample_candles",
    "dataframe_to_candles",
    "load_candles",
    "CsvHistoricalProvider",
]

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]

_TIME_ALIASES = ("ts", "time", "timestamp", "date", "datetime")


def load_market_data(path: str | Path, **kwargs: Any) -> pd.DataFrame:
    """Load a CSV or Parquet file into a frame with ``ts`` + OHLCV columns.

    Args:
        path: Path to data file (CSV or Parquet)
        **kwargs: Additional arguments passed to the pandas reader

    Raises:
        FileNotFoundError: If data file doesn't exist
        ValueError: If data format is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    try:
        if path.suffix.lower() == ".parquet":
            df = pd.read_parquet(path, **kwargs)
        else:
            df = pd.read_csv(path, **kwargs)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        logger.error(f"Failed to load data from {path}: {e}")
        raise ValueError(f"Invalid data format in {path}: {e}") from e

    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})
    time_col = next((c for c in _TIME_ALIASES if c in df.columns), None)
    if time_col is None:
        raise ValueError(f"No time column in {path}; expected one of {_TIME_ALIASES}")
    if time_col != "ts":
        df = df.rename(columns={time_col: "ts"})
    if "volume" not in df.columns:
        df["volume"] = 0.0

    df["ts"] = pd.to_datetime(df["ts"], utc=False)
    logger.info(f"Loaded {len(df)} rows from {path}")
    return df


def validate_market_data(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows the store would reject and return a sorted, unique frame.

    Raises:
        ValueError: If required columns are missing.
    """
    missing = {"ts", *OHLCV_COLUMNS} - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    prices = df[OHLCV_COLUMNS].apply(pd.to_numeric, errors="coerce")
    finite = np.isfinite(prices.to_numpy(dtype=float)).all(axis=1)
    sane = (prices["high"] >= prices["low"]) & (prices["volume"] >= 0)
    keep = finite & sane.to_numpy() & df["ts"].notna().to_numpy()

    cleaned = df.loc[keep, ["ts"]].join(prices.loc[keep])
    cleaned = cleaned.sort_values("ts", kind="stable").drop_duplicates("ts", keep="last")

    dropped = len(df) - len(cleaned)
    if dropped:
        logger.warning(f"Dropped {dropped} invalid or duplicate rows")
    return cleaned.reset_index(drop=True)


def resample_candles(df: pd.DataFrame, timeframe: str | Timeframe) -> pd.DataFrame:
    """Aggregate a finer-grained frame into ``timeframe`` buckets.

    Buckets share the grid of live tick bucketing: epoch aligned, with whole
    weeks opening on Monday.
    """
    tf = parse_timeframe(timeframe)
    indexed = df.set_index("ts")
    origin = pd.Timestamp(tf.origin)
    if indexed.index.tz is None:
        origin = origin.tz_localize(None)
    else:
        origin = origin.tz_convert(indexed.index.tz)

    resampled = (
        indexed.resample(f"{tf.minutes}min", origin=origin, label="left", closed="left")
        .agg(
            {
                "open": "first",
                "high": "max",
                "low": "min",
                "close": "last",
                "volume": "sum",
            }
        )
        .dropna(subset=["open", "close"])
        .reset_index()
    )
    return resampled


def dataframe_to_candles(df: pd.DataFrame) -> list[Candle]:
    return [
        Candle(
            ts=row.ts.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def load_candles(
    path: str | Path, timeframe: str | Timeframe | None = None
) -> list[Candle]:
    """Load, clean and optionally resample a candle file."""
    df = validate_market_data(load_market_data(path))
    if timeframe is not None:
        df = resample_candles(df, timeframe)
    return dataframe_to_candles(df)


def _as_bound(value: date | datetime | None, end: bool) -> pd.Timestamp | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end else time.min)
    return pd.Timestamp(value)


def _localize(bound: pd.Timestamp, tz: Any) -> pd.Timestamp:
    if tz is None:
        return bound.tz_convert(None) if bound.tzinfo else bound
    return bound.tz_convert(tz) if bound.tzinfo else bound.tz_localize(tz)


class CsvHistoricalProvider:
    """Historical provider reading ``<data_dir>/<SYMBOL>_<interval>.csv``.

    Falls back to ``<SYMBOL>.csv`` (or ``.parquet``) and resamples it to the
    requested interval when no interval-specific file exists.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.logger = logging.getLogger(self.__class__.__name__)

    def _find_file(self, symbol: str, timeframe: Timeframe) -> tuple[Path, bool]:
        for suffix in (".csv", ".parquet"):
            exact = self.data_dir / f"{symbol}_{timeframe.name}{suffix}"
            if exact.exists():
                return exact, False
        for suffix in (".csv", ".parquet"):
            generic = self.data_dir / f"{symbol}{suffix}"
            if generic.exists():
                return generic, True
        raise FileNotFoundError(f"No history for {symbol} in {self.data_dir}")

    def load(
        self,
        symbol: str,
        timeframe: str | Timeframe,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[Candle]:
        tf = parse_timeframe(timeframe)
        path, needs_resample = self._find_file(symbol.upper(), tf)

        df = validate_market_data(load_market_data(path))
        if needs_resample:
            df = resample_candles(df, tf)

        lower, upper = _as_bound(start, end=False), _as_bound(end, end=True)
        if lower is not None or upper is not None:
            tz = df["ts"].dt.tz
            mask = pd.Series(True, index=df.index)
            if lower is not None:
                mask &= df["ts"] >= _localize(lower, tz)
            if upper is not None:
                mask &= df["ts"] <= _localize(upper, tz)
            df = df.loc[mask]

        candles = dataframe_to_candles(df)
        self.logger.info(f"{symbol} {tf.name}: {len(candles)} candles from {path.name}")
        return candles

    async def fetch(
        self,
        symbol: str,
        timeframe: Timeframe,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[Candle]:
        return await asyncio.to_thread(self.load, symbol, timeframe, start, end)
