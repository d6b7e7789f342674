"""
Abstract interface for statistical risk metrics

Statistics operate on return series (log returns), not raw bars.
The series for a symbol is derived once per update and shared.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from config.loader import StatisticsConfig
from core.exceptions import InsufficientDataError
from core.models.metrics import MetricKind, MetricParams

if TYPE_CHECKING:
    from domain.statistics.returns import ReturnSeries


class BaseStatistic(ABC):
    """
    Statistic interface

    Implementations:
    - Volatility, SharpeRatio, ValueAtRisk, MaxDrawdown (domain/statistics/risk.py)
    - Correlation, Beta (domain/statistics/relative.py)
    """

    kind: ClassVar[MetricKind]
    needs_benchmark: ClassVar[bool] = False

    def __init__(self, params: MetricParams, config: StatisticsConfig):
        self.params = params
        self.config = config
        self.name = self.__class__.__name__

    @property
    def window(self) -> int:
        """Number of returns used (bars fetched = window + 1)"""
        return self.params.window

    @property
    def benchmark_symbol(self) -> str | None:
        return self.params.benchmark_symbol

    @abstractmethod
    def calculate(self, series: "ReturnSeries", benchmark: "ReturnSeries | None" = None) -> Any:
        """
        Calculate statistic

        Args:
            series: Return series of the symbol (window already applied)
            benchmark: Return series of the benchmark (relative statistics only)

        Raises:
            InsufficientDataError: Too few observations
            DegenerateInputError: Zero variance or similar
        """

    def validate_observations(self, count: int, required: int) -> None:
        if count < required:
            raise InsufficientDataError(
                f"{self!r}: Need {required} return observations, got {count}"
            )

    def __repr__(self) -> str:
        params_str = ", ".join(
            f"{k}={v}" for k, v in self.params.model_dump().items() if v is not None
        )
        return f"{self.name}({params_str})"
