"""Drawing-tool state machine.

Each tool needs either one or two committed points. States are explicit
values rather than flags so a half-finished draft can never leak into the
saved annotation list:

    Idle --select--> AwaitingPoint --commit--> Idle (annotation produced)
    Idle --select--> AwaitingPoint --commit--> AwaitingSecondPoint --commit--> Idle
    any awaiting state --cancel / reselect--> Idle (nothing produced)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from core.annotations.models import Point

__all__ = [
    "DrawingTool",
    "Idle",
    "AwaitingPoint",
    "AwaitingSecondPoint",
    "ToolState",
    "Draft",
    "DrawingToolMachine",
]

logger = logging.getLogger(__name__)


class DrawingTool(str, Enum):
    CURSOR = "cursor"
    HORIZONTAL_LINE = "horizontal_line"
    TRENDLINE = "trendline"
    FIBONACCI = "fibonacci"
    TEXT = "text"

    @property
    def points_required(self) -> int:
        if self is DrawingTool.CURSOR:
            return 0
        if self in (DrawingTool.TRENDLINE, DrawingTool.FIBONACCI):
            return 2
        return 1


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class AwaitingPoint:
    tool: DrawingTool


@dataclass(frozen=True, slots=True)
class AwaitingSecondPoint:
    tool: DrawingTool
    first: Point


ToolState: TypeAlias = Idle | AwaitingPoint | AwaitingSecondPoint


@dataclass(frozen=True, slots=True)
class Draft:
    """Geometry of a completed drawing, not yet owned by any symbol."""

    tool: DrawingTool
    points: tuple[Point, ...]
    label: str | None = None


class DrawingToolMachine:
    """Turns tool selections and committed points into drafts.

    Completing a drawing returns the machine to ``Idle`` (the cursor tool).
    Text notes need a non-empty label; a commit without one is ignored and
    the machine keeps waiting.
    """

    def __init__(self) -> None:
        self._state: ToolState = Idle()

    @property
    def state(self) -> ToolState:
        return self._state

    @property
    def active_tool(self) -> DrawingTool:
        match self._state:
            case AwaitingPoint(tool=tool) | AwaitingSecondPoint(tool=tool):
                return tool
            case _:
                return DrawingTool.CURSOR

    @property
    def is_drawing(self) -> bool:
        return not isinstance(self._state, Idle)

    def select_tool(self, tool: DrawingTool | str) -> ToolState:
        """Arm ``tool``.

        Reselecting the tool already armed cancels it; selecting a different
        tool discards any pending first point.
        """
        tool = DrawingTool(tool)
        if tool is DrawingTool.CURSOR or (self.is_drawing and tool is self.active_tool):
            self.cancel()
            return self._state

        if isinstance(self._state, AwaitingSecondPoint):
            logger.debug(f"Discarding pending {self._state.tool.value} draft")
        self._state = AwaitingPoint(tool)
        return self._state

    def cancel(self) -> None:
        if self.is_drawing:
            logger.debug(f"Cancelled {self.active_tool.value} drawing")
        self._state = Idle()

    def commit(self, point: Point, label: str | None = None) -> Draft | None:
        """Feed one committed point; returns a draft when the drawing completes."""
        match self._state:
            case Idle():
                return None
            case AwaitingPoint(tool=DrawingTool.TEXT) if not label:
                return None
            case AwaitingPoint(tool=tool) if tool.points_required == 2:
                self._state = AwaitingSecondPoint(tool, point)
                return None
            case AwaitingPoint(tool=tool):
                self._state = Idle()
                return Draft(tool, (point,), label)
            case AwaitingSecondPoint(tool=tool, first=first):
                self._state = Idle()
                return Draft(tool, (first, point), label)
        raise AssertionError(f"Unhandled tool state: {self._state!r}")
