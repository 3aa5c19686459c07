import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from core.entities import Tick
from infra.feeds import MalformedTickError, MarketStatus, decode_message, parse_server_time


class TestParseServerTime:
    def test_epoch_seconds(self):
        assert parse_server_time(1704189605) == datetime(2024, 1, 2, 10, 0, 5, tzinfo=UTC)

    def test_epoch_milliseconds(self):
        assert parse_server_time(1704189605500) == datetime(
            2024, 1, 2, 10, 0, 5, 500000, tzinfo=UTC
        )

    def test_iso_with_z(self):
        assert parse_server_time("2024-01-02T10:00:05Z") == datetime(
            2024, 1, 2, 10, 0, 5, tzinfo=UTC
        )

    def test_iso_offset_preserved_as_instant(self):
        parsed = parse_server_time("2024-01-02T12:00:05+02:00")
        assert parsed == datetime(2024, 1, 2, 10, 0, 5, tzinfo=UTC)
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_naive_read_as_utc(self):
        assert parse_server_time(datetime(2024, 1, 2)).tzinfo == UTC

    @pytest.mark.parametrize("raw", [True, float("nan"), "yesterday", [1, 2], 1e20, 1e300, -1e20])
    def test_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_server_time(raw)


class TestDecodeMessage:
    def test_price_update(self):
        raw = json.dumps(
            {"symbol": "aapl", "price": 189.25, "volume": 300, "timestamp": "2024-01-02T10:00:05Z"}
        )
        tick = decode_message(raw)

        assert tick == Tick(
            symbol="AAPL",
            price=189.25,
            server_time=datetime(2024, 1, 2, 10, 0, 5, tzinfo=UTC),
            volume=300.0,
        )

    def test_extra_fields_ignored(self):
        tick = decode_message({"symbol": "ABC", "price": 10, "change": 0.5, "change_pct": 5.0})
        assert isinstance(tick, Tick)
        assert tick.volume == 0.0

    def test_missing_timestamp_stamped_with_receive_time(self):
        before = datetime.now(UTC)
        tick = decode_message(b'{"symbol": "ABC", "price": 10}')
        assert before <= tick.server_time <= datetime.now(UTC)

    def test_market_status(self):
        status = decode_message(
            {"type": "market_status", "is_open": False, "timezone": "America/New_York"}
        )
        assert status == MarketStatus(is_open=False, timezone="America/New_York")

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            b"\xff\xfe",
            "[1, 2]",
            {"price": 10},
            {"symbol": "", "price": 10},
            {"symbol": "ABC"},
            {"symbol": "ABC", "price": "abc"},
            {"symbol": "ABC", "price": 0},
            {"symbol": "ABC", "price": -5},
            {"symbol": "ABC", "price": float("nan")},
            {"symbol": "ABC", "price": 10, "volume": -1},
            {"symbol": "ABC", "price": 10, "timestamp": "soon"},
            {"symbol": "ABC", "price": 10, "timestamp": 1e20},
            {"symbol": "ABC", "price": 10, "timestamp": 1e300},
            {"type": "market_status"},
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(MalformedTickError):
            decode_message(raw)

    def test_error_carries_symbol(self):
        with pytest.raises(MalformedTickError) as exc_info:
            decode_message({"symbol": "ABC", "price": "x"})
        assert exc_info.value.symbol == "ABC"
        assert str(exc_info.value).startswith("MalformedTickError (ABC):")

    def test_aware_offset_timestamp(self):
        tz = timezone(timedelta(hours=-5))
        tick = decode_message(
            {"symbol": "ABC", "price": 1.5, "timestamp": datetime(2024, 1, 2, 5, tzinfo=tz).isoformat()}
        )
        assert tick.server_time == datetime(2024, 1, 2, 10, tzinfo=UTC)
