"""
Metric registry for creating indicator and statistic engines

Factory pattern: MetricKind → engine class
"""

from config.loader import StatisticsConfig
from core.exceptions import InvalidParametersError
from core.interfaces.indicators import BaseIndicator
from core.interfaces.statistics import BaseStatistic
from core.models.metrics import MetricKey, MetricKind
from domain.indicators import (
    EMA,
    MACD,
    RSI,
    SMA,
    BollingerBands,
    Performance,
    PriceChange,
    SupportResistance,
)
from domain.statistics import Beta, Correlation, MaxDrawdown, SharpeRatio, ValueAtRisk, Volatility


class MetricRegistry:
    """
    Registry for metric engine creation

    Indicators work on bars; statistics work on return series and also
    need the statistics configuration.
    """

    _indicators: dict[MetricKind, type[BaseIndicator]] = {
        MetricKind.SMA: SMA,
        MetricKind.EMA: EMA,
        MetricKind.RSI: RSI,
        MetricKind.MACD: MACD,
        MetricKind.BOLLINGER: BollingerBands,
        MetricKind.SUPPORT_RESISTANCE: SupportResistance,
        MetricKind.PRICE_CHANGE: PriceChange,
        MetricKind.PERFORMANCE: Performance,
    }

    _statistics: dict[MetricKind, type[BaseStatistic]] = {
        MetricKind.VOLATILITY: Volatility,
        MetricKind.SHARPE: SharpeRatio,
        MetricKind.VAR: ValueAtRisk,
        MetricKind.MAX_DRAWDOWN: MaxDrawdown,
        MetricKind.CORRELATION: Correlation,
        MetricKind.BETA: Beta,
    }

    def __init__(self, statistics_config: StatisticsConfig):
        self.statistics_config = statistics_config

    @classmethod
    def is_statistic(cls, kind: MetricKind) -> bool:
        return kind in cls._statistics

    @classmethod
    def is_incremental(cls, kind: MetricKind) -> bool:
        indicator_class = cls._indicators.get(kind)
        return indicator_class is not None and indicator_class.incremental

    def create(self, key: MetricKey) -> BaseIndicator | BaseStatistic:
        """
        Create the engine for a metric key

        Raises:
            InvalidParametersError: If no engine is registered for the kind

        Example:
            >>> registry = MetricRegistry(config.statistics)
            >>> ema = registry.create(MetricKey.create("AAPL", "EMA", {"period": 12}))
        """
        if key.kind in self._indicators:
            return self._indicators[key.kind](key.params)
        if key.kind in self._statistics:
            return self._statistics[key.kind](key.params, self.statistics_config)

        available = ", ".join(k.value for k in self.list_kinds())
        raise InvalidParametersError(f"Unknown metric kind: {key.kind}. Available: {available}")

    @classmethod
    def list_kinds(cls) -> list[MetricKind]:
        """
        List all supported metric kinds

        Example:
            >>> [k.value for k in MetricRegistry.list_kinds()][:3]
            ['SMA', 'EMA', 'RSI']
        """
        return list(cls._indicators) + list(cls._statistics)
