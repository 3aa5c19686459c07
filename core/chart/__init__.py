from .composer import ChartComposer
from .config import DEFAULT_INDICATORS, DisplayMode, IndicatorConfig, IndicatorSet
from .frame import ChartFrame, OscillatorPane, OverlaySeries, VolumeBar
from .layout import PaneLayout, PaneRegion, compute_layout
from .surface import RenderSurface

__all__ = [
    "ChartComposer",
    "ChartFrame",
    "DEFAULT_INDICATORS",
    "DisplayMode",
    "IndicatorConfig",
    "IndicatorSet",
    "OscillatorPane",
    "OverlaySeries",
    "PaneLayout",
    "PaneRegion",
    "RenderSurface",
    "VolumeBar",
    "compute_layout",
]
