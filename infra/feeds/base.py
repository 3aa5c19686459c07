from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import date, datetime
from typing import Any, Protocol

from core.entities import Candle
from core.timeframe import Timeframe

__all__ = ["HistoricalProvider", "TickStream", "TickSource"]


class HistoricalProvider(Protocol):
    """Supplies an ordered candle history for a symbol and interval."""

    async def fetch(
        self,
        symbol: str,
        timeframe: Timeframe,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[Candle]: ...


class TickStream(Protocol):
    """An open subscription; iterating yields raw inbound messages.

    Iteration raises ``StreamDisconnect`` on transport failure and simply
    ends when the server closes the stream.
    """

    def __aiter__(self) -> AsyncIterator[str | dict[str, Any]]: ...

    async def aclose(self) -> None: ...


class TickSource(Protocol):
    async def connect(self, symbols: Sequence[str]) -> TickStream:
        """Open a connection and subscribe; returning means the stream is live."""
        ...
