"""Indicator registry for discovery and parameter binding."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from core.entities import Candle
from core.indicators.atr import atr
from core.indicators.bands import bollinger_bands
from core.indicators.base import DerivedSeries
from core.indicators.moving_average import ema, sma
from core.indicators.oscillators import macd, rsi, stochastic
from core.indicators.volume import obv, volume_sma

__all__ = [
    "IndicatorFamily",
    "BoundIndicator",
    "IndicatorRegistry",
    "INDICATOR_REGISTRY",
]

KernelFn = Callable[..., Any]


class IndicatorFamily(Enum):
    """Where an indicator is drawn: on the price axis or in its own pane."""

    OVERLAY = "overlay"
    OSCILLATOR = "oscillator"


def _as_lines(output: Any) -> dict[str, DerivedSeries]:
    """Normalise kernel output to named lines."""
    if isinstance(output, tuple):
        return {"value": output}
    lines = getattr(output, "lines", None)
    if callable(lines):
        return dict(lines())
    raise TypeError(f"Unsupported indicator output: {type(output).__name__}")


@dataclass(frozen=True)
class BoundIndicator:
    """A kernel with fixed, already-validated parameters."""

    kernel: str
    family: IndicatorFamily
    func: KernelFn = field(repr=False)
    params: Mapping[str, Any] = field(default_factory=dict)

    def compute(self, candles: Sequence[Candle]) -> dict[str, DerivedSeries]:
        return _as_lines(self.func(candles, **self.params))


@dataclass(frozen=True)
class _Entry:
    func: KernelFn
    family: IndicatorFamily
    defaults: Mapping[str, Any]


class IndicatorRegistry:
    """Registry mapping kernel names to functions and chart families.

    Allows indicator ids to be declared in configuration by kernel name plus
    parameters, so new ids reuse the same kernel functions.

    Example:
        >>> registry = IndicatorRegistry()
        >>> registry.register("sma", sma, IndicatorFamily.OVERLAY, period=20)
        >>> sma50 = registry.create("sma", period=50)
        >>> lines = sma50.compute(candles)
    """

    def __init__(self) -> None:
        self._registry: dict[str, _Entry] = {}

    def register(
        self, name: str, func: KernelFn, family: IndicatorFamily, **defaults: Any
    ) -> None:
        """Register a kernel function under ``name`` with default parameters."""
        self._registry[name] = _Entry(func, family, MappingProxyType(dict(defaults)))

    def create(self, name: str, **params: Any) -> BoundIndicator:
        """Bind parameters to a registered kernel.

        Parameters are validated immediately by evaluating the kernel on an
        empty series, so a bad period fails here rather than mid-stream.

        Raises:
            ValueError: If the name is unknown or a parameter is invalid.
        """
        if name not in self._registry:
            raise ValueError(
                f"Indicator '{name}' not found in registry. "
                f"Available: {list(self._registry.keys())}"
            )

        entry = self._registry[name]
        merged = {**entry.defaults, **params}
        try:
            entry.func((), **merged)
        except TypeError as e:
            raise ValueError(f"Invalid parameters for '{name}': {e}") from e

        return BoundIndicator(
            kernel=name,
            family=entry.family,
            func=entry.func,
            params=MappingProxyType(merged),
        )

    def family_of(self, name: str) -> IndicatorFamily:
        return self._registry[name].family

    def list_indicators(self) -> list[str]:
        """Get list of all registered kernel names."""
        return list(self._registry.keys())

    def is_registered(self, name: str) -> bool:
        return name in self._registry


# Global registry instance
INDICATOR_REGISTRY = IndicatorRegistry()

INDICATOR_REGISTRY.register("sma", sma, IndicatorFamily.OVERLAY, period=20)
INDICATOR_REGISTRY.register("ema", ema, IndicatorFamily.OVERLAY, period=12)
INDICATOR_REGISTRY.register(
    "bollinger", bollinger_bands, IndicatorFamily.OVERLAY, period=20, mult=2.0
)
INDICATOR_REGISTRY.register("rsi", rsi, IndicatorFamily.OSCILLATOR, period=14)
INDICATOR_REGISTRY.register(
    "macd", macd, IndicatorFamily.OSCILLATOR, fast=12, slow=26, signal=9
)
INDICATOR_REGISTRY.register(
    "stochastic", stochastic, IndicatorFamily.OSCILLATOR, k_period=14, d_period=3
)
INDICATOR_REGISTRY.register("obv", obv, IndicatorFamily.OSCILLATOR)
INDICATOR_REGISTRY.register("atr", atr, IndicatorFamily.OSCILLATOR, period=14)
INDICATOR_REGISTRY.register(
    "volume_sma", volume_sma, IndicatorFamily.OSCILLATOR, period=20
)
