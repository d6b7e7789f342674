"""Models module - Pydantic data models"""

from .market_data import Bar
from .metrics import (
    BollingerValue,
    EmaFanSummary,
    EmaFanValue,
    MacdValue,
    MetricKey,
    MetricKind,
    MetricParams,
    MetricResult,
    MetricsUpdated,
    PerformanceValue,
    PivotLevel,
    PriceChangeValue,
    SupportResistanceValue,
    ValueAtRiskValue,
    build_params,
)

__all__ = [
    "Bar",
    "MetricKind",
    "MetricParams",
    "MetricKey",
    "MetricResult",
    "MetricsUpdated",
    "MacdValue",
    "BollingerValue",
    "PivotLevel",
    "SupportResistanceValue",
    "ValueAtRiskValue",
    "PriceChangeValue",
    "PerformanceValue",
    "EmaFanValue",
    "EmaFanSummary",
    "build_params",
]
