"""
Application configuration.

Settings come from (highest first) explicit YAML/dotlist values passed to
``load_settings``, ``LIVECHART_*`` environment variables and ``.env``, and
the model defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, cast

import yaml
from omegaconf import OmegaConf
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from core.chart.config import DEFAULT_INDICATORS, DisplayMode
from core.timeframe import Timeframe, parse_timeframe
from infra.feeds.live_merge import ReconnectPolicy

__all__ = ["StreamSettings", "ChartDefaults", "ChartSettings", "load_settings"]

logger = logging.getLogger(__name__)

_KNOWN_INDICATORS = frozenset(c.id for c in DEFAULT_INDICATORS)
_CHART_RANGES = ("1D", "5D", "1M", "3M", "6M", "1Y", "5Y", "ALL")


class StreamSettings(BaseModel):
    """Live price stream connection settings."""

    ws_url: str = Field(
        default="ws://localhost:8000/ws/prices", description="Price stream endpoint"
    )
    reconnect_initial: float = Field(default=1.0, gt=0, description="First retry delay (s)")
    reconnect_max_interval: float = Field(
        default=30.0, gt=0, description="Cap on the backoff delay (s)"
    )
    reconnect_jitter: float = Field(default=1.0, ge=0, description="Max random extra delay (s)")
    reconnect_attempts: int = Field(
        default=5, ge=0, description="Consecutive failures before staying offline"
    )
    queue_maxsize: int = Field(default=10_000, ge=1, description="Pending tick capacity")

    @model_validator(mode="after")
    def _check_backoff(self) -> StreamSettings:
        if self.reconnect_max_interval < self.reconnect_initial:
            raise ValueError("reconnect_max_interval must be >= reconnect_initial")
        return self

    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            initial=self.reconnect_initial,
            max_interval=self.reconnect_max_interval,
            jitter=self.reconnect_jitter,
            max_attempts=self.reconnect_attempts,
        )


class ChartDefaults(BaseModel):
    """Initial chart state for a new session."""

    timeframe: str = Field(default="1d", description="Candle interval, e.g. 1m, 15m, 1d")
    chart_range: str = Field(default="1Y", description="History window selector")
    display_mode: DisplayMode = Field(default=DisplayMode.CANDLESTICK)
    indicators: list[str] = Field(
        default_factory=lambda: ["sma20", "sma50"], description="Enabled indicator ids"
    )
    oscillator_pane_height: float = Field(default=0.2, gt=0, lt=1)
    min_main_height: float = Field(default=0.4, gt=0, le=1)
    max_candles: int = Field(default=5000, ge=1)

    @field_validator("timeframe")
    @classmethod
    def _validate_timeframe(cls, v: str) -> str:
        parse_timeframe(v)
        return v

    @field_validator("chart_range")
    @classmethod
    def _validate_range(cls, v: str) -> str:
        v = v.upper()
        if v not in _CHART_RANGES:
            raise ValueError(f"Invalid chart range: {v}. Valid: {list(_CHART_RANGES)}")
        return v

    @field_validator("indicators")
    @classmethod
    def _validate_indicators(cls, v: list[str]) -> list[str]:
        unknown = [i for i in v if i not in _KNOWN_INDICATORS]
        if unknown:
            raise ValueError(
                f"Unknown indicator ids: {unknown}. Valid: {sorted(_KNOWN_INDICATORS)}"
            )
        return v

    @property
    def interval(self) -> Timeframe:
        return parse_timeframe(self.timeframe)


class ChartSettings(BaseSettings):
    """Top-level settings, overridable through ``LIVECHART_*`` variables.

    Nested values use a double underscore, e.g.
    ``LIVECHART_STREAM__WS_URL=wss://example.com/ws``.
    """

    stream: StreamSettings = Field(default_factory=StreamSettings)
    chart: ChartDefaults = Field(default_factory=ChartDefaults)
    annotation_store_path: Path = Field(default=Path(".livechart/annotations.json"))
    data_dir: Path = Field(default=Path("data"), description="CSV history directory")
    log_level: str = Field(default="INFO")

    model_config = {
        "env_prefix": "LIVECHART_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings(
    path: str | Path | None = None, overrides: Sequence[str] = ()
) -> ChartSettings:
    """Build settings from an optional YAML file plus ``key=value`` overrides.

    Args:
        path: YAML configuration file.
        overrides: OmegaConf dotlist entries, e.g. ``["chart.timeframe=15m"]``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not a mapping or fails validation.
    """
    raw: dict[str, Any] = {}
    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        with open(config_file) as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(
                f"Configuration file must contain a dictionary, got {type(loaded)}"
            )
        raw = loaded or {}

    cfg = OmegaConf.create(raw)
    if overrides:
        cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))

    container = cast(dict[str, Any], OmegaConf.to_container(cfg, resolve=True))
    settings = ChartSettings(**container)
    logger.debug(f"Loaded settings from {path or 'defaults'}: {settings.model_dump()}")
    return settings
