"""
Analytics configuration loader with YAML support and Pydantic validation
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.exceptions import ConfigError
from core.utils.config import resolve_config_path

logger = logging.getLogger(__name__)

DEFAULT_ANALYTICS_CONFIG = Path(__file__).parent / "providers" / "analytics.yaml"


class StatisticsConfig(BaseModel):
    """
    Statistics engine configuration

    trading_days_per_year and risk_free_rate have no code default:
    they must be supplied by configuration.
    """

    trading_days_per_year: int = Field(gt=0)
    risk_free_rate: float
    var_min_historical_observations: int = Field(default=30, gt=1)


class CacheConfig(BaseModel):
    """Calculation cache configuration (TTL per metric kind)"""

    default_ttl_seconds: float = Field(default=300.0, gt=0)
    ttl_seconds: dict[str, float] = Field(default_factory=dict)
    computation_timeout_seconds: float = Field(default=5.0, gt=0)
    # Expired entries are evicted at most this often (on write)
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

    @field_validator("ttl_seconds")
    @classmethod
    def ttl_kinds_known(cls, v: dict[str, float]) -> dict[str, float]:
        from core.models.metrics import MetricKind

        known = {k.value for k in MetricKind}
        normalized = {}
        for kind, ttl in v.items():
            kind = kind.upper()
            if kind not in known:
                raise ValueError(f"Unknown metric kind in ttl_seconds: {kind}")
            if ttl <= 0:
                raise ValueError(f"TTL for {kind} must be positive")
            normalized[kind] = ttl
        return normalized

    def ttl_for(self, kind) -> float:
        """TTL in seconds for a metric kind (falls back to default)"""
        name = getattr(kind, "value", kind)
        return self.ttl_seconds.get(str(name).upper(), self.default_ttl_seconds)


class DispatcherConfig(BaseModel):
    """Update dispatcher configuration"""

    ingest_queue_size: int = Field(default=10_000, gt=0)
    max_pending_bars_per_symbol: int = Field(default=500, gt=0)
    shutdown_timeout_seconds: float = Field(default=10.0, gt=0)


class SubscriptionConfig(BaseModel):
    """In-process subscriber queue configuration"""

    queue_size: int = Field(default=100, gt=0)


class EmaFanConfig(BaseModel):
    """EMA periods of the fan, shortest first"""

    periods: list[int] = Field(default_factory=lambda: [18, 50, 100, 200])

    @field_validator("periods")
    @classmethod
    def strictly_increasing(cls, v: list[int]) -> list[int]:
        if len(v) < 2:
            raise ValueError("EMA fan needs at least two periods")
        if any(p <= 0 for p in v) or any(a >= b for a, b in zip(v, v[1:])):
            raise ValueError(f"EMA fan periods must be positive and strictly increasing: {v}")
        return v


class WarmupMetricConfig(BaseModel):
    """One metric of the default set precomputed on startup"""

    kind: str
    params: dict[str, Any] = Field(default_factory=dict)


class WarmupConfig(BaseModel):
    symbols: list[str] = Field(default_factory=list)
    metrics: list[WarmupMetricConfig] = Field(default_factory=list)


class AnalyticsConfig(BaseModel):
    """All analytics engine configuration"""

    statistics: StatisticsConfig
    cache: CacheConfig = Field(default_factory=CacheConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    subscriptions: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    ema_fan: EmaFanConfig = Field(default_factory=EmaFanConfig)
    warmup: WarmupConfig = Field(default_factory=WarmupConfig)


def parse_analytics_config(data: dict[str, Any]) -> AnalyticsConfig:
    """
    Validate a raw config mapping

    Raises:
        ConfigError: If required values are missing or invalid
    """
    try:
        return AnalyticsConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid analytics configuration: {e}") from e


def load_analytics_config(config_path: str | Path = DEFAULT_ANALYTICS_CONFIG) -> AnalyticsConfig:
    """
    Load and validate analytics configuration from YAML

    Args:
        config_path: Path to analytics.yaml

    Returns:
        AnalyticsConfig: Validated configuration

    Raises:
        ConfigError: If the file is missing or invalid

    Example:
        >>> config = load_analytics_config()
        >>> config.statistics.trading_days_per_year
        252
    """
    config_file = resolve_config_path(config_path)

    if not config_file.exists():
        raise ConfigError(f"Analytics config not found: {config_path}")

    with open(config_file) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Analytics config is not valid YAML: {e}") from e

    config = parse_analytics_config(data)
    logger.info(
        f"✓ Loaded analytics config: {len(config.cache.ttl_seconds)} TTL overrides, "
        f"{len(config.warmup.metrics)} warm-up metrics"
    )
    return config


__all__ = [
    "AnalyticsConfig",
    "StatisticsConfig",
    "CacheConfig",
    "DispatcherConfig",
    "SubscriptionConfig",
    "EmaFanConfig",
    "WarmupConfig",
    "WarmupMetricConfig",
    "parse_analytics_config",
    "load_analytics_config",
]
