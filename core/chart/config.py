"""Indicator configuration, the default catalog and chart display modes."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from core.indicators.registry import (
    INDICATOR_REGISTRY,
    BoundIndicator,
    IndicatorFamily,
    IndicatorRegistry,
)

__all__ = [
    "DisplayMode",
    "IndicatorConfig",
    "IndicatorSet",
    "DEFAULT_INDICATORS",
]


class DisplayMode(Enum):
    """How the main price series is drawn.

    Only ``HEIKIN_ASHI`` changes the data; the others are pure styling.
    """

    CANDLESTICK = "candlestick"
    LINE = "line"
    AREA = "area"
    OHLC = "ohlc"
    HEIKIN_ASHI = "heikin_ashi"

    @property
    def transforms_data(self) -> bool:
        return self == DisplayMode.HEIKIN_ASHI


@dataclass(frozen=True)
class IndicatorConfig:
    """One selectable indicator id with fixed parameters.

    Binding happens on construction so an invalid period fails when the
    config is declared, never during a recompute.
    """

    id: str
    name: str
    kernel: str
    params: Mapping[str, Any] = field(default_factory=dict)
    enabled: bool = False
    value_range: tuple[float, float] | None = None
    registry: IndicatorRegistry = field(
        default=INDICATOR_REGISTRY, repr=False, compare=False
    )
    bound: BoundIndicator = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("indicator id must not be empty")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(
            self, "bound", self.registry.create(self.kernel, **self.params)
        )

    @property
    def family(self) -> IndicatorFamily:
        return self.bound.family

    @property
    def is_overlay(self) -> bool:
        return self.family == IndicatorFamily.OVERLAY

    def with_enabled(self, enabled: bool) -> IndicatorConfig:
        return replace(self, enabled=enabled)


DEFAULT_INDICATORS: tuple[IndicatorConfig, ...] = (
    IndicatorConfig("sma20", "SMA 20", "sma", {"period": 20}),
    IndicatorConfig("sma50", "SMA 50", "sma", {"period": 50}),
    IndicatorConfig("sma200", "SMA 200", "sma", {"period": 200}),
    IndicatorConfig("ema12", "EMA 12", "ema", {"period": 12}),
    IndicatorConfig("ema26", "EMA 26", "ema", {"period": 26}),
    IndicatorConfig("ema50", "EMA 50", "ema", {"period": 50}),
    IndicatorConfig("bb", "Bollinger Bands", "bollinger", {"period": 20, "mult": 2.0}),
    IndicatorConfig("rsi", "RSI (14)", "rsi", {"period": 14}, value_range=(0.0, 100.0)),
    IndicatorConfig("macd", "MACD", "macd", {"fast": 12, "slow": 26, "signal": 9}),
    IndicatorConfig(
        "stoch",
        "Stochastic (14, 3)",
        "stochastic",
        {"k_period": 14, "d_period": 3},
        value_range=(0.0, 100.0),
    ),
    IndicatorConfig("obv", "On-Balance Volume", "obv"),
    IndicatorConfig("atr", "ATR (14)", "atr", {"period": 14}),
)


class IndicatorSet:
    """Ordered collection of indicator configs with an enabled subset.

    ``version`` changes whenever the enabled set changes, which is what the
    composer watches to decide on a recompute.
    """

    def __init__(
        self,
        configs: Iterable[IndicatorConfig] = DEFAULT_INDICATORS,
        enabled: Iterable[str] = (),
    ) -> None:
        self._configs: dict[str, IndicatorConfig] = {}
        for config in configs:
            if config.id in self._configs:
                raise ValueError(f"Duplicate indicator id: {config.id}")
            self._configs[config.id] = config
        self._version = 0
        for indicator_id in enabled:
            self.enable(indicator_id)

    @property
    def version(self) -> int:
        return self._version

    def __contains__(self, indicator_id: object) -> bool:
        return indicator_id in self._configs

    def get(self, indicator_id: str) -> IndicatorConfig:
        try:
            return self._configs[indicator_id]
        except KeyError:
            raise ValueError(
                f"Unknown indicator id '{indicator_id}'. "
                f"Available: {list(self._configs)}"
            ) from None

    def add(self, config: IndicatorConfig) -> None:
        """Register an extra indicator id (e.g. a custom period)."""
        if config.id in self._configs:
            raise ValueError(f"Duplicate indicator id: {config.id}")
        self._configs[config.id] = config
        if config.enabled:
            self._version += 1

    def set_enabled(self, indicator_id: str, enabled: bool) -> bool:
        """Enable or disable an id; returns True if anything changed."""
        config = self.get(indicator_id)
        if config.enabled == enabled:
            return False
        self._configs[indicator_id] = config.with_enabled(enabled)
        self._version += 1
        return True

    def enable(self, indicator_id: str) -> bool:
        return self.set_enabled(indicator_id, True)

    def disable(self, indicator_id: str) -> bool:
        return self.set_enabled(indicator_id, False)

    def toggle(self, indicator_id: str) -> bool:
        """Flip an id and return its new enabled state."""
        config = self.get(indicator_id)
        self.set_enabled(indicator_id, not config.enabled)
        return not config.enabled

    def all(self) -> list[IndicatorConfig]:
        return list(self._configs.values())

    def enabled(self) -> list[IndicatorConfig]:
        return [c for c in self._configs.values() if c.enabled]

    def enabled_overlays(self) -> list[IndicatorConfig]:
        return [c for c in self.enabled() if c.is_overlay]

    def enabled_oscillators(self) -> list[IndicatorConfig]:
        return [c for c in self.enabled() if not c.is_overlay]
