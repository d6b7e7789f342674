"""
Single-symbol risk statistics

Implementations:
- Volatility: annualised standard deviation of log returns
- SharpeRatio: annualised excess return over volatility
- ValueAtRisk: historical percentile with parametric fallback
- MaxDrawdown: largest peak-to-trough decline of closes
"""

import logging
import math
from statistics import NormalDist

import numpy as np

from core.exceptions import DegenerateInputError
from core.interfaces.statistics import BaseStatistic
from core.models.metrics import MetricKind, ValueAtRiskValue
from domain.statistics.returns import ReturnSeries

logger = logging.getLogger(__name__)


class Volatility(BaseStatistic):
    """
    Annualised volatility

    Formula: σ_annual = stdev(log returns, ddof=1) × √trading_days_per_year
    """

    kind = MetricKind.VOLATILITY

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> float:
        returns = series.tail(self.window).returns
        self.validate_observations(len(returns), 2)

        return float(np.std(returns, ddof=1) * math.sqrt(self.config.trading_days_per_year))


class SharpeRatio(BaseStatistic):
    """
    Annualised Sharpe ratio

    Formula: (mean daily return - rf / T) / σ_daily × √T
    The per-query risk_free_rate overrides the configured one.

    Raises:
        DegenerateInputError: Zero volatility
    """

    kind = MetricKind.SHARPE

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> float:
        returns = series.tail(self.window).returns
        self.validate_observations(len(returns), 2)

        trading_days = self.config.trading_days_per_year
        risk_free = self.params.risk_free_rate
        if risk_free is None:
            risk_free = self.config.risk_free_rate

        sigma = float(np.std(returns, ddof=1))
        if sigma == 0:
            raise DegenerateInputError(f"{self!r}: Zero volatility for {series.symbol}")

        excess = float(np.mean(returns)) - risk_free / trading_days
        return excess / sigma * math.sqrt(trading_days)


class ValueAtRisk(BaseStatistic):
    """
    Value at Risk (reported as a positive loss)

    - historical: -percentile(returns, (1 - confidence) × 100) × position value,
      used when at least var_min_historical_observations returns exist
    - parametric: -(μ + z × σ) × position value, z = Φ⁻¹(1 - confidence)
    """

    kind = MetricKind.VAR

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> ValueAtRiskValue:
        returns = series.tail(self.window).returns
        self.validate_observations(len(returns), 2)

        confidence = self.params.confidence
        position_value = self.params.position_value

        if len(returns) >= self.config.var_min_historical_observations:
            method = "historical"
            quantile = float(np.percentile(returns, (1 - confidence) * 100))
        else:
            method = "parametric"
            z = NormalDist().inv_cdf(1 - confidence)
            quantile = float(np.mean(returns)) + z * float(np.std(returns, ddof=1))
            logger.debug(
                f"{self!r}: {len(returns)} returns for {series.symbol}, using parametric VaR"
            )

        return ValueAtRiskValue(
            value_at_risk=-quantile * position_value,
            confidence=confidence,
            method=method,
            observations=len(returns),
            position_value=position_value,
        )


class MaxDrawdown(BaseStatistic):
    """
    Maximum drawdown over the window's closes

    Formula: max over t of (peak_t - close_t) / peak_t, peak_t = running max
    Range: 0-1
    """

    kind = MetricKind.MAX_DRAWDOWN

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> float:
        closes = series.tail(self.window).closes
        self.validate_observations(len(closes) - 1, 1)

        return max_drawdown(closes)


def max_drawdown(values: np.ndarray) -> float:
    """
    Largest peak-to-trough decline as a fraction of the peak

    Example:
        >>> round(max_drawdown(np.array([100, 120, 90, 95, 150, 80])), 4)
        0.4667
    """
    values = np.asarray(values, dtype=float)
    peaks = np.maximum.accumulate(values)
    drawdowns = (peaks - values) / peaks
    return float(min(1.0, max(0.0, drawdowns.max())))
