"""
Pytest configuration for test suite

Markers:
- unit: Fast unit tests (no external dependencies)
- integration: Integration tests (requires Docker services)
- slow: Slow-running tests (>10 seconds)
"""

from datetime import UTC, datetime, timedelta

import pytest

from config.loader import AnalyticsConfig, parse_analytics_config
from core.models.market_data import Bar


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Fast unit tests (no dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (requires Docker)"
    )
    config.addinivalue_line("markers", "slow: Slow tests (>10 seconds)")


START = datetime(2024, 1, 2, tzinfo=UTC)


def make_bar(
    close: float,
    day: int = 0,
    symbol: str = "AAPL",
    volume: float = 1000.0,
    open_: float | None = None,
    high: float | None = None,
    low: float | None = None,
    start: datetime = START,
) -> Bar:
    """Helper to create a daily bar; open/high/low default around the close"""
    open_ = close if open_ is None else open_
    high = max(open_, close) * 1.01 if high is None else high
    low = min(open_, close) * 0.99 if low is None else low
    return Bar(
        symbol=symbol,
        timestamp=start + timedelta(days=day),
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def make_bars(closes: list[float], symbol: str = "AAPL", start: datetime = START) -> list[Bar]:
    """One bar per close, one calendar day apart"""
    return [make_bar(c, i, symbol=symbol, start=start) for i, c in enumerate(closes)]


# Textbook RSI dataset (Wilder)
KNOWN_CLOSES = [
    44.34, 44.09, 44.15, 43.61, 44.33, 44.83, 45.10, 45.42, 45.84, 46.08,
    45.89, 46.03, 45.61, 46.28, 46.28, 46.00, 46.03, 46.41, 46.22, 45.64,
    46.21, 46.25, 45.71, 46.45, 45.78, 45.35, 44.03, 44.18, 44.22, 44.57,
    43.42, 42.66, 43.13, 43.70, 44.10, 44.52, 44.80, 45.20, 45.02, 45.45,
]


@pytest.fixture
def known_closes() -> list[float]:
    return list(KNOWN_CLOSES)


@pytest.fixture
def analytics_config_data() -> dict:
    return {
        "statistics": {
            "trading_days_per_year": 252,
            "risk_free_rate": 0.05,
            "var_min_historical_observations": 30,
        },
        "cache": {
            "default_ttl_seconds": 300,
            "computation_timeout_seconds": 2,
        },
        "dispatcher": {
            "ingest_queue_size": 100,
            "max_pending_bars_per_symbol": 50,
            "shutdown_timeout_seconds": 2,
        },
        "subscriptions": {"queue_size": 10},
        "warmup": {
            "symbols": ["AAPL"],
            "metrics": [
                {"kind": "SMA", "params": {"period": 5}},
                {"kind": "EMA", "params": {"period": 3}},
                {"kind": "RSI", "params": {"period": 14}},
                {"kind": "VOLATILITY", "params": {"window": 20}},
            ],
        },
    }


@pytest.fixture
def analytics_config(analytics_config_data) -> AnalyticsConfig:
    return parse_analytics_config(analytics_config_data)


@pytest.fixture
def statistics_config(analytics_config):
    return analytics_config.statistics


@pytest.fixture
def bar_factory():
    """make_bar(close, day, symbol=..., ...) helper"""
    return make_bar


@pytest.fixture
def bars_factory():
    """make_bars(closes, symbol=..., start=...) helper"""
    return make_bars
