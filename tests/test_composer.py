from datetime import timedelta

import pytest

from core.chart import (
    ChartComposer,
    DisplayMode,
    IndicatorConfig,
    IndicatorSet,
    PaneRegion,
    compute_layout,
)
from core.indicators import heikin_ashi
from core.series_store import TimeSeriesStore
from tests.fixtures import RecordingSurface, create_test_candles, values


@pytest.fixture
def store():
    store = TimeSeriesStore("ABC", "1m")
    store.replace(create_test_candles(80))
    return store


@pytest.fixture
def surface():
    return RecordingSurface()


class TestComputeLayout:
    def test_no_oscillators_gives_full_main_pane(self):
        layout = compute_layout([])
        assert layout.main == PaneRegion(0.0, 1.0)
        assert layout.oscillators == {}

    def test_two_oscillators_stack_below_main(self):
        layout = compute_layout(["rsi", "macd"])
        assert layout.main.bottom == pytest.approx(0.6)
        assert layout.oscillators["rsi"].top == pytest.approx(0.6)
        assert layout.oscillators["rsi"].bottom == pytest.approx(0.8)
        assert layout.oscillators["macd"] == PaneRegion(pytest.approx(0.8), 1.0)

    def test_many_oscillators_keep_minimum_main_height(self):
        ids = ["a", "b", "c", "d", "e"]
        layout = compute_layout(ids, pane_height=0.2, min_main_height=0.4)

        assert layout.main.height == pytest.approx(0.4)
        regions = [layout.main, *layout.oscillators.values()]
        for i, first in enumerate(regions):
            for second in regions[i + 1 :]:
                assert not first.overlaps(second)
        assert regions[-1].bottom == 1.0

    @pytest.mark.parametrize("kwargs", [{"pane_height": 0}, {"pane_height": 1.5}, {"min_main_height": 0}])
    def test_invalid_fractions(self, kwargs):
        with pytest.raises(ValueError):
            compute_layout(["rsi"], **kwargs)


class TestIndicatorSet:
    def test_unknown_id_raises(self):
        with pytest.raises(ValueError, match="Unknown indicator"):
            IndicatorSet(enabled=["nope"])

    def test_version_changes_only_on_effective_change(self):
        indicators = IndicatorSet()
        start = indicators.version

        assert indicators.enable("rsi") is True
        assert indicators.enable("rsi") is False
        assert indicators.version == start + 1

        assert indicators.toggle("rsi") is False
        assert indicators.version == start + 2

    def test_custom_indicator(self):
        indicators = IndicatorSet()
        indicators.add(IndicatorConfig("sma10", "SMA 10", "sma", {"period": 10}, enabled=True))

        assert [c.id for c in indicators.enabled_overlays()] == ["sma10"]
        with pytest.raises(ValueError, match="Duplicate"):
            indicators.add(IndicatorConfig("sma10", "SMA 10", "sma", {"period": 10}))

    def test_bad_params_rejected_at_config_time(self):
        with pytest.raises(ValueError):
            IndicatorConfig("bad", "Bad", "sma", {"window": 3})


class TestChartComposer:
    def test_frame_contents(self, store):
        composer = ChartComposer(store, IndicatorSet(enabled=["sma20", "bb", "rsi"]))
        frame = composer.compose()

        assert frame.symbol == "ABC"
        assert frame.main_series == store.snapshot().candles
        assert set(frame.overlays) == {"sma20", "bb"}
        assert set(frame.oscillators) == {"rsi"}
        assert set(frame.overlays["bb"].lines) == {"upper", "middle", "lower"}
        assert frame.oscillators["rsi"].value_range == (0.0, 100.0)
        assert frame.pane_count == 2
        assert len(frame.volume) == len(frame.main_series)

    def test_disabling_oscillator_removes_only_its_pane(self, store, surface):
        indicators = IndicatorSet(enabled=["sma20", "rsi", "macd"])
        composer = ChartComposer(store, indicators, surface=surface)
        before = composer.compose()

        indicators.disable("rsi")
        after = composer.refresh()

        assert after is not None
        assert "rsi" not in after.oscillators
        assert after.main_series == before.main_series
        assert values(after.overlays["sma20"].lines["value"]) == values(
            before.overlays["sma20"].lines["value"]
        )
        for line in ("macd", "signal", "histogram"):
            assert values(after.oscillators["macd"].lines[line]) == values(
                before.oscillators["macd"].lines[line]
            )
        assert after.oscillators["macd"].region == PaneRegion(pytest.approx(0.8), 1.0)
        assert surface.calls.count(("remove_oscillator_pane", "rsi")) == 1
        assert surface.count("remove_overlay") == 0
        assert "rsi" not in surface.panes
        assert composer.arena_ids == ["sma20", "macd"]

    def test_disabling_overlay_calls_remove_overlay(self, store, surface):
        indicators = IndicatorSet(enabled=["sma20", "ema12"])
        composer = ChartComposer(store, indicators, surface=surface)
        composer.compose()

        indicators.disable("ema12")
        composer.refresh()

        assert surface.calls.count(("remove_overlay", "ema12")) == 1
        assert set(surface.overlays) == {"sma20"}

    def test_refresh_skips_when_nothing_changed(self, store, surface):
        composer = ChartComposer(store, IndicatorSet(enabled=["sma20"]), surface=surface)
        assert composer.refresh() is not None
        assert composer.refresh() is None
        assert surface.count("set_main_series") == 1

    def test_refresh_after_tick(self, store, surface):
        composer = ChartComposer(store, IndicatorSet(enabled=["sma20"]), surface=surface)
        first = composer.compose()

        last = store.snapshot().last
        store.merge_tick(last.ts + timedelta(minutes=1), last.close + 1)
        frame = composer.refresh()

        assert frame is not None
        assert frame.source_version > first.source_version
        assert len(frame.main_series) == len(first.main_series) + 1
        assert surface.count("set_main_series") == 2

    def test_heikin_ashi_keeps_indicators_on_canonical_series(self, store):
        indicators = IndicatorSet(enabled=["sma20", "rsi"])
        composer = ChartComposer(store, indicators)
        plain = composer.compose()

        composer.set_display_mode("heikin_ashi")
        ha = composer.refresh()

        assert ha is not None
        assert ha.main_series == heikin_ashi(store.snapshot().candles)
        assert ha.main_series != plain.main_series
        assert values(ha.overlays["sma20"].lines["value"]) == values(
            plain.overlays["sma20"].lines["value"]
        )
        assert values(ha.oscillators["rsi"].lines["value"]) == values(
            plain.oscillators["rsi"].lines["value"]
        )

    def test_styling_modes_do_not_transform(self, store):
        composer = ChartComposer(store, display_mode=DisplayMode.LINE)
        assert composer.compose().main_series == store.snapshot().candles

    def test_empty_store(self):
        composer = ChartComposer(TimeSeriesStore("ABC", "1d"), IndicatorSet(enabled=["sma20", "rsi"]))
        frame = composer.compose()
        assert frame.main_series == ()
        assert frame.overlays["sma20"].lines["value"] == ()

    def test_clear_removes_everything_from_surface(self, store, surface):
        composer = ChartComposer(store, IndicatorSet(enabled=["sma20", "rsi"]), surface=surface)
        composer.compose()

        composer.clear()

        assert composer.arena_ids == []
        assert surface.overlays == {}
        assert surface.panes == {}
        assert composer.last_frame is None
