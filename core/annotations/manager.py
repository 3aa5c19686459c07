"""Per-symbol annotation lifecycle: load, draw, edit, flush."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from core.annotations.coordinates import CoordinateMapper, to_domain
from core.annotations.models import (
    ANNOTATION_COLORS,
    Annotation,
    AnnotationDecodeError,
    Fibonacci,
    HorizontalLine,
    TextNote,
    TrendLine,
    annotation_from_record,
    annotation_to_record,
    new_annotation_id,
)
from core.annotations.store import AnnotationStore
from core.annotations.tools import Draft, DrawingTool, DrawingToolMachine, ToolState

__all__ = ["AnnotationManager"]

logger = logging.getLogger(__name__)


class AnnotationManager:
    """Owns the annotations of the active symbol.

    Every mutation is written to the durable store before the in-memory list
    changes, so a failed write (``AnnotationStoreError``) leaves the manager
    exactly as it was and the drawing action is not acknowledged.

    Example:
        >>> manager = AnnotationManager(InMemoryAnnotationStore())
        >>> manager.activate("ABC")
        >>> line = manager.add_horizontal_line(105.5)
        >>> manager.activate("ABC")
        >>> manager.annotations[0].price
        105.5
    """

    def __init__(self, store: AnnotationStore, palette: tuple[str, ...] = ANNOTATION_COLORS):
        if not palette:
            raise ValueError("palette must contain at least one color")
        self.store = store
        self.palette = palette
        self.tools = DrawingToolMachine()

        self._symbol: str | None = None
        self._annotations: list[Annotation] = []
        self._active_color = palette[0]

    @property
    def symbol(self) -> str | None:
        return self._symbol

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return tuple(self._annotations)

    @property
    def active_color(self) -> str:
        return self._active_color

    def set_active_color(self, color: str) -> None:
        if color not in self.palette:
            raise ValueError(f"Color {color} is not in the palette")
        self._active_color = color

    # ------------------------------------------------------------------
    # Symbol lifecycle
    # ------------------------------------------------------------------

    def activate(self, symbol: str) -> tuple[Annotation, ...]:
        """Load every stored annotation for ``symbol``, cancelling any drawing."""
        self.tools.cancel()
        loaded: list[Annotation] = []
        for record in self.store.get(symbol):
            try:
                loaded.append(annotation_from_record(record))
            except AnnotationDecodeError as e:
                logger.warning(f"{symbol}: skipping stored annotation: {e}")

        self._symbol = symbol
        self._annotations = loaded
        logger.info(f"Loaded {len(loaded)} annotations for {symbol}")
        return self.annotations

    def _require_symbol(self) -> str:
        if self._symbol is None:
            raise RuntimeError("No active symbol; call activate() first")
        return self._symbol

    def _flush(self, annotations: list[Annotation]) -> None:
        symbol = self._require_symbol()
        self.store.set(symbol, [annotation_to_record(a) for a in annotations])
        self._annotations = annotations

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, annotation: Annotation) -> Annotation:
        symbol = self._require_symbol()
        if annotation.symbol != symbol:
            raise ValueError(
                f"Annotation belongs to {annotation.symbol}, active symbol is {symbol}"
            )
        self._flush([*self._annotations, annotation])
        logger.debug(f"{symbol}: added {annotation.kind} {annotation.id}")
        return annotation

    def _common(self) -> dict[str, Any]:
        return {
            "id": new_annotation_id(),
            "symbol": self._require_symbol(),
            "color": self._active_color,
        }

    def add_horizontal_line(self, price: float, label: str | None = None) -> HorizontalLine:
        annotation = HorizontalLine(**self._common(), price=price, label=label)
        self.add(annotation)
        return annotation

    def add_from_draft(self, draft: Draft) -> Annotation:
        """Turn a completed drawing into an annotation of the matching variant."""
        common = self._common()
        annotation: Annotation
        match draft:
            case Draft(tool=DrawingTool.HORIZONTAL_LINE, points=(point,)):
                annotation = HorizontalLine(**common, price=point.price, label=draft.label)
            case Draft(tool=DrawingTool.TRENDLINE, points=(a, b)):
                annotation = TrendLine(**common, point_a=a, point_b=b)
            case Draft(tool=DrawingTool.FIBONACCI, points=(a, b)):
                annotation = Fibonacci(**common, point_a=a, point_b=b)
            case Draft(tool=DrawingTool.TEXT, points=(point,), label=str(label)):
                annotation = TextNote(**common, point=point, label=label)
            case _:
                raise ValueError(f"Incomplete drawing: {draft!r}")
        return self.add(annotation)

    def remove(self, annotation_id: str) -> bool:
        remaining = [a for a in self._annotations if a.id != annotation_id]
        if len(remaining) == len(self._annotations):
            return False
        self._flush(remaining)
        logger.debug(f"{self._symbol}: removed {annotation_id}")
        return True

    def update(self, annotation_id: str, **changes: Any) -> Annotation:
        """Replace fields of an existing annotation; ``id`` and ``symbol`` are fixed."""
        if {"id", "symbol"} & changes.keys():
            raise ValueError("id and symbol cannot be changed")
        if "color" in changes and changes["color"] not in self.palette:
            raise ValueError(f"Color {changes['color']} is not in the palette")

        for i, current in enumerate(self._annotations):
            if current.id == annotation_id:
                try:
                    updated = dataclasses.replace(current, **changes)
                except TypeError as e:
                    raise ValueError(f"Invalid change for {current.kind}: {e}") from e
                annotations = list(self._annotations)
                annotations[i] = updated
                self._flush(annotations)
                return updated
        raise KeyError(annotation_id)

    def get(self, annotation_id: str) -> Annotation | None:
        return next((a for a in self._annotations if a.id == annotation_id), None)

    def clear_all(self) -> int:
        """Remove every annotation of the active symbol only."""
        symbol = self._require_symbol()
        count = len(self._annotations)
        self.store.delete(symbol)
        self._annotations = []
        logger.info(f"{symbol}: cleared {count} annotations")
        return count

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def select_tool(self, tool: DrawingTool | str) -> ToolState:
        return self.tools.select_tool(tool)

    def cancel_drawing(self) -> None:
        self.tools.cancel()

    def handle_click(
        self,
        mapper: CoordinateMapper,
        x: float,
        y: float,
        label: str | None = None,
    ) -> Annotation | None:
        """Commit a pointer position; returns the annotation once a drawing completes.

        Clicks outside the mapper's scale are ignored.
        """
        point = to_domain(mapper, x, y)
        if point is None:
            return None
        draft = self.tools.commit(point, label)
        if draft is None:
            return None
        return self.add_from_draft(draft)
