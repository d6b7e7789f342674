"""
Analytics Service - Time-series calculation & cache engine

Event-driven service that:
1. Answers metric queries from cache, computing on miss (single-flight)
2. Consumes NewBar events and advances incremental indicators per symbol
3. Marks dependent statistics stale and publishes MetricsUpdated
4. Warms the configured default metric set on startup
"""

from services.analytics_service.cache import CalculationCache
from services.analytics_service.calculator import MetricCalculator
from services.analytics_service.dispatcher import UpdateDispatcher
from services.analytics_service.engine import AnalyticsEngine

__all__ = ["AnalyticsEngine", "CalculationCache", "MetricCalculator", "UpdateDispatcher"]
