"""Decoding of inbound streaming messages into domain values."""

from __future__ import annotations

import json
import math
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.entities import Tick

from .exceptions import MalformedTickError

__all__ = ["PriceUpdate", "MarketStatus", "decode_message", "parse_server_time"]

# Epoch values above this are treated as milliseconds
_MS_THRESHOLD = 1e11


def parse_server_time(raw: Any) -> datetime:
    """Accept epoch seconds, epoch milliseconds or an ISO-8601 string; returns UTC."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=UTC)
    if isinstance(raw, bool):
        raise ValueError("timestamp must be a number or ISO string")
    if isinstance(raw, int | float):
        if not math.isfinite(raw):
            raise ValueError("timestamp must be finite")
        seconds = raw / 1000 if raw > _MS_THRESHOLD else raw
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {raw!r}") from e
    if isinstance(raw, str):
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise ValueError(f"Unsupported timestamp: {raw!r}")


class PriceUpdate(BaseModel):
    """``{"symbol": "AAPL", "price": 189.2, "volume": 300, "timestamp": ...}``."""

    symbol: str = Field(min_length=1)
    price: float = Field(gt=0, allow_inf_nan=False)
    volume: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    timestamp: datetime | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, v: Any) -> datetime | None:
        if v is None:
            return None
        return parse_server_time(v)

    def to_tick(self, received_at: datetime | None = None) -> Tick:
        server_time = self.timestamp or received_at or datetime.now(UTC)
        return Tick(
            symbol=self.symbol.upper(),
            price=self.price,
            server_time=server_time,
            volume=self.volume,
        )


class MarketStatus(BaseModel):
    is_open: bool
    current_time: str | None = None
    timezone: str | None = None
    message: str | None = None


def decode_message(raw: str | bytes | dict[str, Any]) -> Tick | MarketStatus:
    """Decode one inbound message.

    Messages without a server timestamp are stamped with the receive time.

    Raises:
        MalformedTickError: Invalid JSON, missing fields or non-numeric values.
    """
    if isinstance(raw, str | bytes):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedTickError(f"Invalid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise MalformedTickError(f"Expected an object, got {type(data).__name__}")

    try:
        if data.get("type") == "market_status":
            return MarketStatus.model_validate(data)
        return PriceUpdate.model_validate(data).to_tick()
    except ValidationError as e:
        symbol = data.get("symbol") if isinstance(data.get("symbol"), str) else None
        raise MalformedTickError(
            f"{e.error_count()} invalid field(s): {e.errors()[0]['msg']}", symbol
        ) from e
