from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["PaneRegion", "PaneLayout", "compute_layout"]


@dataclass(frozen=True, slots=True)
class PaneRegion:
    """Vertical slice of the chart as fractions of its height (0 = top)."""

    top: float
    bottom: float

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def overlaps(self, other: PaneRegion) -> bool:
        return self.top < other.bottom and other.top < self.bottom


@dataclass(frozen=True)
class PaneLayout:
    main: PaneRegion
    oscillators: dict[str, PaneRegion]


def compute_layout(
    oscillator_ids: Sequence[str],
    pane_height: float = 0.2,
    min_main_height: float = 0.4,
) -> PaneLayout:
    """Stack one equal-height sub-pane per oscillator below the price pane.

    Each oscillator gets ``pane_height`` of the chart until the main pane
    would fall below ``min_main_height``; past that point the remaining
    space is shared equally. Regions never overlap, so an oscillator's range
    never compresses the price axis.
    """
    if not 0 < pane_height < 1:
        raise ValueError("pane_height must be between 0 and 1")
    if not 0 < min_main_height <= 1:
        raise ValueError("min_main_height must be between 0 and 1")

    count = len(oscillator_ids)
    if count == 0:
        return PaneLayout(main=PaneRegion(0.0, 1.0), oscillators={})

    each = min(pane_height, (1.0 - min_main_height) / count)
    main_bottom = 1.0 - each * count

    regions: dict[str, PaneRegion] = {}
    for i, osc_id in enumerate(oscillator_ids):
        top = main_bottom + i * each
        bottom = 1.0 if i == count - 1 else main_bottom + (i + 1) * each
        regions[osc_id] = PaneRegion(top, bottom)

    return PaneLayout(main=PaneRegion(0.0, main_bottom), oscillators=regions)
