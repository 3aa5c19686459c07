from .atr import atr, true_range
from .bands import BollingerBands, bollinger_bands
from .base import DerivedSeries
from .levels import PivotLevels, VolumeBin, pivot_points, volume_profile
from .moving_average import ema, ema_values, sma, sma_values
from .oscillators import MACDResult, StochasticResult, macd, rsi, stochastic
from .registry import (
    INDICATOR_REGISTRY,
    BoundIndicator,
    IndicatorFamily,
    IndicatorRegistry,
)
from .transforms import heikin_ashi
from .volume import obv, volume_sma

__all__ = [
    "DerivedSeries",
    "sma",
    "ema",
    "sma_values",
    "ema_values",
    "rsi",
    "macd",
    "MACDResult",
    "stochastic",
    "StochasticResult",
    "bollinger_bands",
    "BollingerBands",
    "heikin_ashi",
    "obv",
    "volume_sma",
    "atr",
    "true_range",
    "pivot_points",
    "PivotLevels",
    "volume_profile",
    "VolumeBin",
    "IndicatorFamily",
    "BoundIndicator",
    "IndicatorRegistry",
    "INDICATOR_REGISTRY",
]
