"""
Unit tests for return series and single-symbol risk statistics
"""

import math
from statistics import NormalDist

import numpy as np
import pytest

from core.exceptions import DegenerateInputError, InsufficientDataError
from core.models.metrics import MaxDrawdownParams, SharpeParams, VarParams, VolatilityParams
from domain.statistics.returns import ReturnSeries
from domain.statistics.risk import MaxDrawdown, SharpeRatio, ValueAtRisk, Volatility, max_drawdown


def zigzag(n: int, base: float = 100.0) -> list[float]:
    """Deterministic, non-constant price path"""
    return [base * (1 + 0.01 * math.sin(i) + 0.002 * i) for i in range(n)]


@pytest.fixture
def series(bars_factory) -> ReturnSeries:
    return ReturnSeries.from_bars("AAPL", bars_factory(zigzag(61)))


class TestReturnSeries:
    def test_log_returns(self, bars_factory):
        s = ReturnSeries.from_bars("AAPL", bars_factory([100.0, 110.0, 99.0]))

        assert len(s) == 2
        assert s.returns[0] == pytest.approx(math.log(1.1))
        assert s.returns[1] == pytest.approx(math.log(0.9))
        assert s.return_timestamps == s.timestamps[1:]

    def test_tail_keeps_window_plus_one_closes(self, series):
        tail = series.tail(10)

        assert len(tail) == 10
        assert len(tail.closes) == 11
        assert tail.latest_timestamp == series.latest_timestamp

    def test_single_bar_has_no_returns(self, bars_factory):
        s = ReturnSeries.from_bars("AAPL", bars_factory([100.0]))

        assert len(s) == 0

    def test_align_on_common_timestamps(self, bars_factory):
        a = ReturnSeries.from_bars("AAPL", bars_factory([100.0, 101.0, 102.0, 103.0]))
        full = bars_factory([50.0, 51.0, 52.0, 53.0], symbol="SPY")
        b = ReturnSeries.from_bars("SPY", [full[0], full[1], full[3]])

        x, y = a.align(b)

        # Return stamps of days 1 and 3 are shared
        assert len(x) == len(y) == 2
        assert x[0] == pytest.approx(math.log(101.0 / 100.0))
        assert y[1] == pytest.approx(math.log(53.0 / 51.0))


class TestVolatility:
    def test_annualised_sample_std(self, series, statistics_config):
        vol = Volatility(VolatilityParams(window=20), statistics_config)

        expected = np.std(series.returns[-20:], ddof=1) * math.sqrt(252)

        assert vol.calculate(series) == pytest.approx(expected)

    def test_needs_two_returns(self, bars_factory, statistics_config):
        s = ReturnSeries.from_bars("AAPL", bars_factory([100.0, 101.0]))

        with pytest.raises(InsufficientDataError):
            Volatility(VolatilityParams(window=20), statistics_config).calculate(s)


class TestSharpeRatio:
    def test_uses_configured_risk_free_rate(self, series, statistics_config):
        sharpe = SharpeRatio(SharpeParams(window=60), statistics_config)
        returns = series.returns[-60:]

        expected = (returns.mean() - 0.05 / 252) / returns.std(ddof=1) * math.sqrt(252)

        assert sharpe.calculate(series) == pytest.approx(expected)

    def test_per_query_risk_free_rate(self, series, statistics_config):
        sharpe = SharpeRatio(SharpeParams(window=60, risk_free_rate=0.0), statistics_config)
        returns = series.returns[-60:]

        expected = returns.mean() / returns.std(ddof=1) * math.sqrt(252)

        assert sharpe.calculate(series) == pytest.approx(expected)

    def test_zero_volatility_is_degenerate(self, bars_factory, statistics_config):
        s = ReturnSeries.from_bars("AAPL", bars_factory([100.0] * 10))

        with pytest.raises(DegenerateInputError):
            SharpeRatio(SharpeParams(window=5), statistics_config).calculate(s)


class TestValueAtRisk:
    def test_historical_with_enough_observations(self, series, statistics_config):
        var = ValueAtRisk(VarParams(confidence=0.95, window=60), statistics_config)

        value = var.calculate(series)

        expected = -np.percentile(series.returns[-60:], 5)
        assert value.method == "historical"
        assert value.observations == 60
        assert value.value_at_risk == pytest.approx(expected)

    def test_parametric_fallback(self, series, statistics_config):
        var = ValueAtRisk(VarParams(confidence=0.99, window=20, position_value=1000.0), statistics_config)

        value = var.calculate(series)

        returns = series.returns[-20:]
        z = NormalDist().inv_cdf(0.01)
        expected = -(returns.mean() + z * returns.std(ddof=1)) * 1000.0
        assert value.method == "parametric"
        assert value.value_at_risk == pytest.approx(expected)
        assert value.position_value == 1000.0

    def test_higher_confidence_larger_loss(self, series, statistics_config):
        low = ValueAtRisk(VarParams(confidence=0.90, window=60), statistics_config).calculate(series)
        high = ValueAtRisk(VarParams(confidence=0.99, window=60), statistics_config).calculate(series)

        assert high.value_at_risk >= low.value_at_risk


class TestMaxDrawdown:
    def test_known_path(self):
        assert max_drawdown(np.array([100, 120, 90, 95, 150, 80])) == pytest.approx(0.4667, abs=1e-4)

    def test_monotonic_rise_has_no_drawdown(self):
        assert max_drawdown(np.array([1.0, 2.0, 3.0])) == 0.0

    def test_statistic_uses_window_closes(self, bars_factory, statistics_config):
        s = ReturnSeries.from_bars("AAPL", bars_factory([50.0, 100.0, 120.0, 90.0, 95.0, 150.0, 80.0]))

        # Window of 5 returns covers the last 6 closes
        value = MaxDrawdown(MaxDrawdownParams(window=5), statistics_config).calculate(s)

        assert value == pytest.approx(70 / 150)
        assert 0.0 <= value <= 1.0
