from datetime import datetime

import pytest

from core.annotations import (
    AwaitingPoint,
    AwaitingSecondPoint,
    Draft,
    DrawingTool,
    DrawingToolMachine,
    Idle,
    LinearViewport,
    Point,
)

P1 = Point(datetime(2024, 1, 1), 100.0)
P2 = Point(datetime(2024, 1, 2), 110.0)


@pytest.fixture
def machine():
    return DrawingToolMachine()


class TestDrawingToolMachine:
    def test_starts_idle(self, machine):
        assert machine.state == Idle()
        assert machine.active_tool is DrawingTool.CURSOR
        assert not machine.is_drawing

    @pytest.mark.parametrize(
        "tool, required",
        [
            (DrawingTool.CURSOR, 0),
            (DrawingTool.HORIZONTAL_LINE, 1),
            (DrawingTool.TEXT, 1),
            (DrawingTool.TRENDLINE, 2),
            (DrawingTool.FIBONACCI, 2),
        ],
    )
    def test_points_required(self, tool, required):
        assert tool.points_required == required

    def test_one_point_tool_completes_and_returns_to_cursor(self, machine):
        machine.select_tool(DrawingTool.HORIZONTAL_LINE)

        draft = machine.commit(P1)

        assert draft == Draft(DrawingTool.HORIZONTAL_LINE, (P1,))
        assert machine.state == Idle()

    def test_two_point_tool(self, machine):
        machine.select_tool("trendline")

        assert machine.commit(P1) is None
        assert machine.state == AwaitingSecondPoint(DrawingTool.TRENDLINE, P1)

        assert machine.commit(P2) == Draft(DrawingTool.TRENDLINE, (P1, P2))
        assert machine.state == Idle()

    def test_cancel_discards_pending_point(self, machine):
        machine.select_tool("fibonacci")
        machine.commit(P1)

        machine.cancel()

        assert machine.state == Idle()
        assert machine.commit(P2) is None

    def test_reselecting_armed_tool_cancels(self, machine):
        machine.select_tool("trendline")
        assert machine.select_tool("trendline") == Idle()

    def test_switching_tools_discards_first_point(self, machine):
        machine.select_tool("trendline")
        machine.commit(P1)

        assert machine.select_tool("fibonacci") == AwaitingPoint(DrawingTool.FIBONACCI)
        assert machine.commit(P2) is None
        assert machine.state == AwaitingSecondPoint(DrawingTool.FIBONACCI, P2)

    def test_cursor_selection_cancels(self, machine):
        machine.select_tool("text")
        machine.select_tool("cursor")
        assert machine.state == Idle()

    def test_text_without_label_keeps_waiting(self, machine):
        machine.select_tool("text")

        assert machine.commit(P1) is None
        assert machine.commit(P1, label="") is None
        assert machine.state == AwaitingPoint(DrawingTool.TEXT)

        assert machine.commit(P1, label="note") == Draft(DrawingTool.TEXT, (P1,), "note")

    def test_unknown_tool_rejected(self, machine):
        with pytest.raises(ValueError):
            machine.select_tool("arrow")


class TestLinearViewport:
    @pytest.fixture
    def viewport(self):
        return LinearViewport(datetime(2024, 1, 1), datetime(2024, 1, 2), 100.0, 200.0, 240, 100)

    def test_round_trip_inside_scale(self, viewport):
        assert viewport.y_to_price(25) == pytest.approx(175.0)
        assert viewport.price_to_y(175.0) == pytest.approx(25)
        assert viewport.x_to_time(120) == datetime(2024, 1, 1, 12)
        assert viewport.time_to_x(datetime(2024, 1, 1, 6)) == pytest.approx(60)

    def test_off_scale_is_none(self, viewport):
        assert viewport.y_to_price(-1) is None
        assert viewport.price_to_y(250.0) is None
        assert viewport.x_to_time(241) is None
        assert viewport.time_to_x(datetime(2024, 1, 3)) is None

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            LinearViewport(datetime(2024, 1, 2), datetime(2024, 1, 1), 100.0, 200.0, 10, 10)
        with pytest.raises(ValueError):
            LinearViewport(datetime(2024, 1, 1), datetime(2024, 1, 2), 200.0, 100.0, 10, 10)
