"""
Statistics module

Exports:
- ReturnSeries (log returns shared across statistics)
- Risk: Volatility, SharpeRatio, ValueAtRisk, MaxDrawdown
- Relative: Correlation, Beta
"""

from domain.statistics.relative import Beta, Correlation
from domain.statistics.returns import ReturnSeries
from domain.statistics.risk import MaxDrawdown, SharpeRatio, ValueAtRisk, Volatility, max_drawdown

__all__ = [
    "ReturnSeries",
    "Volatility",
    "SharpeRatio",
    "ValueAtRisk",
    "MaxDrawdown",
    "max_drawdown",
    "Correlation",
    "Beta",
]
