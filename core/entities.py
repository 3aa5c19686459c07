from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

__all__ = ["Candle", "Tick", "DerivedPoint", "ConnectionState"]


@dataclass(frozen=True, slots=True)
class Candle:
    ts: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True, slots=True)
class Tick:
    """Single live trade/quote update for one symbol."""

    symbol: str
    price: float
    server_time: datetime
    volume: float = 0.0


@dataclass(frozen=True, slots=True)
class DerivedPoint:
    """One indicator output aligned with a source candle.

    ``value`` is None during the warm-up window. Absent is never zero.
    """

    ts: datetime
    value: float | None

    @property
    def is_present(self) -> bool:
        return self.value is not None


class ConnectionState(Enum):
    """Lifecycle of a live subscription."""

    CONNECTING = "connecting"
    LIVE = "live"
    OFFLINE = "offline"
    CLOSED = "closed"
