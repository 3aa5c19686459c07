import json
import os
import re
import stat
from datetime import UTC, datetime

import pytest

from core.annotations import (
    ANNOTATION_COLORS,
    AnnotationDecodeError,
    AnnotationManager,
    AnnotationStoreError,
    Fibonacci,
    HorizontalLine,
    InMemoryAnnotationStore,
    JsonFileAnnotationStore,
    LinearViewport,
    Point,
    TextNote,
    TrendLine,
    annotation_from_record,
    annotation_to_record,
    new_annotation_id,
)


class FailingStore(InMemoryAnnotationStore):
    """Store that refuses every write."""

    def set(self, symbol, records):
        raise AnnotationStoreError("disk full")


@pytest.fixture
def manager():
    manager = AnnotationManager(InMemoryAnnotationStore())
    manager.activate("ABC")
    return manager


@pytest.fixture
def viewport():
    # 1000px wide over 10 days, 500px tall over 100..200
    return LinearViewport(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 1, 11, tzinfo=UTC),
        price_low=100.0,
        price_high=200.0,
        width=1000,
        height=500,
    )


class TestModels:
    def test_id_format(self):
        assert re.fullmatch(r"ann_\d+_[0-9a-z]{9}", new_annotation_id())
        assert new_annotation_id() != new_annotation_id()

    def test_fibonacci_levels(self):
        fib = Fibonacci(
            id="f",
            symbol="ABC",
            point_a=Point(datetime(2024, 1, 1), 100.0),
            point_b=Point(datetime(2024, 1, 5), 200.0),
        )
        levels = fib.levels()

        assert levels[0.0] == pytest.approx(200.0)
        assert levels[0.5] == pytest.approx(150.0)
        assert levels[0.618] == pytest.approx(138.2)
        assert levels[1.0] == pytest.approx(100.0)

    def test_trendline_extends(self):
        line = TrendLine(
            id="t",
            symbol="ABC",
            point_a=Point(datetime(2024, 1, 1), 100.0),
            point_b=Point(datetime(2024, 1, 3), 110.0),
        )
        assert line.price_at(datetime(2024, 1, 2)) == pytest.approx(105.0)
        assert line.price_at(datetime(2024, 1, 5)) == pytest.approx(120.0)

    def test_record_keeps_variant_tag(self):
        note = TextNote(
            id="n", symbol="ABC", point=Point(datetime(2024, 1, 1, tzinfo=UTC), 150.0), label="earnings"
        )
        record = annotation_to_record(note)

        assert record["type"] == "text"
        assert record["point"] == {"time": "2024-01-01T00:00:00+00:00", "price": 150.0}
        assert annotation_from_record(record) == note

    def test_unknown_tag_raises(self):
        with pytest.raises(AnnotationDecodeError, match="Unknown annotation type"):
            annotation_from_record({"type": "arrow", "id": "x", "symbol": "ABC"})

    def test_missing_field_raises(self):
        with pytest.raises(AnnotationDecodeError):
            annotation_from_record({"type": "trendline", "id": "x", "symbol": "ABC"})


class TestJsonFileStore:
    def test_horizontal_line_survives_reload(self, tmp_path):
        path = tmp_path / "annotations.json"
        manager = AnnotationManager(JsonFileAnnotationStore(path))
        manager.activate("ABC")
        line = manager.add_horizontal_line(105.5)

        reloaded = AnnotationManager(JsonFileAnnotationStore(path))
        annotations = reloaded.activate("ABC")

        assert len(annotations) == 1
        assert isinstance(annotations[0], HorizontalLine)
        assert annotations[0].price == 105.5
        assert annotations[0].id == line.id
        assert annotations[0] == line

    def test_unknown_record_is_skipped_on_load(self, tmp_path):
        path = tmp_path / "annotations.json"
        good = annotation_to_record(HorizontalLine(id="h1", symbol="ABC", price=101.0))
        path.write_text(json.dumps({"ABC": [{"type": "arrow", "id": "z"}, good]}))

        manager = AnnotationManager(JsonFileAnnotationStore(path))
        annotations = manager.activate("ABC")

        assert [a.id for a in annotations] == ["h1"]

    def test_symbols_listed_sorted(self, tmp_path):
        store = JsonFileAnnotationStore(tmp_path / "a.json")
        store.set("MSFT", [])
        store.set("AAPL", [])
        assert store.symbols() == ["AAPL", "MSFT"]

    def test_missing_file_reads_empty(self, tmp_path):
        store = JsonFileAnnotationStore(tmp_path / "missing" / "a.json")
        assert store.get("ABC") == []
        assert store.symbols() == []

    def test_corrupt_document_raises(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_text("{not json")
        with pytest.raises(AnnotationStoreError, match="Cannot read"):
            JsonFileAnnotationStore(path).get("ABC")

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileAnnotationStore(tmp_path / "a.json")
        store.set("ABC", [{"type": "horizontal_line"}])
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    @pytest.mark.parametrize("mode", [0o644, 0o640])
    def test_rewrite_keeps_file_permissions(self, tmp_path, mode):
        path = tmp_path / "a.json"
        path.write_text("{}")
        path.chmod(mode)

        JsonFileAnnotationStore(path).set("ABC", [])

        assert stat.S_IMODE(path.stat().st_mode) == mode

    def test_new_file_uses_umask_default(self, tmp_path):
        path = tmp_path / "a.json"
        umask = os.umask(0o022)
        try:
            JsonFileAnnotationStore(path).set("ABC", [])
        finally:
            os.umask(umask)

        assert stat.S_IMODE(path.stat().st_mode) == 0o644


class TestAnnotationManager:
    def test_requires_active_symbol(self):
        manager = AnnotationManager(InMemoryAnnotationStore())
        with pytest.raises(RuntimeError):
            manager.add_horizontal_line(100.0)

    def test_rejects_foreign_symbol(self, manager):
        with pytest.raises(ValueError):
            manager.add(HorizontalLine(id="x", symbol="XYZ", price=1.0))

    def test_uses_active_color(self, manager):
        manager.set_active_color(ANNOTATION_COLORS[2])
        assert manager.add_horizontal_line(100.0).color == ANNOTATION_COLORS[2]

        with pytest.raises(ValueError):
            manager.set_active_color("#123456")

    def test_update(self, manager):
        line = manager.add_horizontal_line(100.0, label="support")

        updated = manager.update(line.id, price=101.25, color=ANNOTATION_COLORS[1])

        assert updated.price == 101.25
        assert updated.label == "support"
        assert updated.id == line.id
        assert manager.get(line.id) == updated
        assert manager.store.get("ABC")[0]["price"] == 101.25

    @pytest.mark.parametrize(
        "changes, error",
        [
            ({"id": "other"}, ValueError),
            ({"symbol": "XYZ"}, ValueError),
            ({"color": "#000001"}, ValueError),
            ({"point_a": None}, ValueError),
        ],
    )
    def test_invalid_updates(self, manager, changes, error):
        line = manager.add_horizontal_line(100.0)
        with pytest.raises(error):
            manager.update(line.id, **changes)

    def test_update_unknown_id(self, manager):
        with pytest.raises(KeyError):
            manager.update("ann_missing", price=1.0)

    def test_remove(self, manager):
        line = manager.add_horizontal_line(100.0)
        assert manager.remove(line.id) is True
        assert manager.remove(line.id) is False
        assert manager.annotations == ()

    def test_clear_all_only_touches_active_symbol(self):
        store = InMemoryAnnotationStore()
        manager = AnnotationManager(store)
        manager.activate("XYZ")
        manager.add_horizontal_line(50.0)
        manager.activate("ABC")
        manager.add_horizontal_line(100.0)
        manager.add_horizontal_line(110.0)

        assert manager.clear_all() == 2

        assert manager.annotations == ()
        assert store.get("ABC") == []
        assert len(manager.activate("XYZ")) == 1

    def test_failed_write_leaves_state_unchanged(self):
        manager = AnnotationManager(FailingStore())
        manager.activate("ABC")

        with pytest.raises(AnnotationStoreError):
            manager.add_horizontal_line(100.0)
        assert manager.annotations == ()

    def test_activate_cancels_pending_drawing(self, manager):
        manager.select_tool("trendline")
        manager.activate("XYZ")
        assert not manager.tools.is_drawing


class TestPointerDrawing:
    def test_horizontal_line_from_click(self, manager, viewport):
        manager.select_tool("horizontal_line")

        annotation = manager.handle_click(viewport, x=500, y=250)

        assert isinstance(annotation, HorizontalLine)
        assert annotation.price == pytest.approx(150.0)
        assert manager.annotations == (annotation,)
        assert not manager.tools.is_drawing

    def test_trendline_needs_two_clicks(self, manager, viewport):
        manager.select_tool("trendline")

        assert manager.handle_click(viewport, x=0, y=500) is None
        assert manager.annotations == ()

        annotation = manager.handle_click(viewport, x=1000, y=0)

        assert isinstance(annotation, TrendLine)
        assert annotation.point_a == Point(datetime(2024, 1, 1, tzinfo=UTC), 100.0)
        assert annotation.point_b == Point(datetime(2024, 1, 11, tzinfo=UTC), 200.0)

    def test_fibonacci_from_clicks(self, manager, viewport):
        manager.select_tool("fibonacci")
        manager.handle_click(viewport, x=100, y=400)
        fib = manager.handle_click(viewport, x=900, y=100)

        assert isinstance(fib, Fibonacci)
        assert fib.levels()[0.5] == pytest.approx(150.0)

    def test_text_requires_label(self, manager, viewport):
        manager.select_tool("text")

        assert manager.handle_click(viewport, x=10, y=10) is None
        assert manager.tools.is_drawing

        note = manager.handle_click(viewport, x=10, y=10, label="breakout")
        assert isinstance(note, TextNote)
        assert note.label == "breakout"

    def test_click_outside_scale_is_ignored(self, manager, viewport):
        manager.select_tool("horizontal_line")

        assert manager.handle_click(viewport, x=500, y=900) is None
        assert manager.tools.is_drawing
        assert manager.annotations == ()

    def test_cursor_click_does_nothing(self, manager, viewport):
        assert manager.handle_click(viewport, x=500, y=250) is None
        assert manager.annotations == ()
