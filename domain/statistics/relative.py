"""
Benchmark-relative statistics

Implementations:
- Correlation: Pearson correlation of aligned log returns
- Beta: cov(symbol, benchmark) / var(benchmark)

Both align the two return series on common timestamps first.
"""

import numpy as np

from core.exceptions import DegenerateInputError, InsufficientDataError
from core.interfaces.statistics import BaseStatistic
from core.models.metrics import MetricKind
from domain.statistics.returns import ReturnSeries


class RelativeStatistic(BaseStatistic):
    needs_benchmark = True

    def aligned(self, series: ReturnSeries, benchmark: ReturnSeries | None) -> tuple[np.ndarray, np.ndarray]:
        if benchmark is None:
            raise InsufficientDataError(f"{self!r}: No history for benchmark {self.benchmark_symbol}")

        a, b = series.align(benchmark, self.window)
        self.validate_observations(len(a), 2)
        return a, b


class Correlation(RelativeStatistic):
    """
    Correlation with a benchmark

    Range: -1 to 1

    Raises:
        DegenerateInputError: Either series has zero variance
    """

    kind = MetricKind.CORRELATION

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> float:
        a, b = self.aligned(series, benchmark)

        if np.std(a) == 0 or np.std(b) == 0:
            raise DegenerateInputError(
                f"{self!r}: Zero variance in {series.symbol} or {self.benchmark_symbol} returns"
            )

        value = float(np.corrcoef(a, b)[0, 1])
        return min(1.0, max(-1.0, value))


class Beta(RelativeStatistic):
    """
    Beta against a benchmark

    Formula: β = cov(r_symbol, r_benchmark) / var(r_benchmark)

    Raises:
        DegenerateInputError: Benchmark has zero variance
    """

    kind = MetricKind.BETA

    def calculate(self, series: ReturnSeries, benchmark: ReturnSeries | None = None) -> float:
        a, b = self.aligned(series, benchmark)

        benchmark_var = float(np.var(b, ddof=1))
        if benchmark_var == 0:
            raise DegenerateInputError(f"{self!r}: Zero variance in {self.benchmark_symbol} returns")

        covariance = float(np.cov(a, b, ddof=1)[0, 1])
        return covariance / benchmark_var
