"""
Metric Calculator - Full computation from the bar store

Clean separation of concerns:
- Query bars from the store (window sized per engine)
- Build/reuse return series for statistics
- Calculate via the engine created by MetricRegistry

Architecture:
    MetricRegistry → Create engine for a MetricKey
    BaseBarStore → Source of truth for history
    MetricCalculator → Fetch history, calculate, wrap in MetricResult
"""

import logging
from collections import OrderedDict
from datetime import datetime

from core.exceptions import InsufficientDataError
from core.interfaces.indicators import BaseIndicator, EngineState, IncrementalIndicator
from core.interfaces.statistics import BaseStatistic
from core.interfaces.store import BaseBarStore
from core.models.market_data import Bar
from core.models.metrics import MetricKey, MetricResult
from domain.registry import MetricRegistry
from domain.statistics.returns import ReturnSeries

logger = logging.getLogger(__name__)


class MetricCalculator:
    """Compute metrics from stored history (cache-miss and cold-start paths)"""

    def __init__(self, store: BaseBarStore, registry: MetricRegistry, max_memoized_series: int = 512):
        self.store = store
        self.registry = registry
        self.max_memoized_series = max_memoized_series

        # {(symbol, window): ReturnSeries}, dropped on new bar / invalidation
        self._series: OrderedDict[tuple[str, int], ReturnSeries] = OrderedDict()
        self._series_generation: dict[str, int] = {}
        self.series_hits = 0
        self.series_builds = 0

    async def compute(self, key: MetricKey) -> MetricResult:
        """
        Full computation for one key

        Raises:
            InsufficientDataError: Not enough history
            DegenerateInputError: Degenerate statistics input
        """
        engine = self.registry.create(key)

        if isinstance(engine, BaseStatistic):
            value, as_of = await self._compute_statistic(key, engine)
        else:
            bars = await self.fetch_bars(key.symbol, engine)
            if not bars:
                raise InsufficientDataError(f"{key!r}: No bars stored for {key.symbol}")
            value = engine.calculate(bars)
            as_of = bars[-1].timestamp

        logger.debug(f"✓ Computed {key!r} as of {as_of}")
        return MetricResult(key=key, value=value, as_of=as_of)

    async def cold_start(self, key: MetricKey, indicator: IncrementalIndicator) -> tuple[EngineState, MetricResult]:
        """
        Rebuild an incremental indicator's state from stored history

        Returns:
            (state, result) - state is positioned on the newest stored bar
        """
        bars = await self.fetch_bars(key.symbol, indicator)
        if not bars:
            raise InsufficientDataError(f"{key!r}: No bars stored for {key.symbol}")

        state, value = indicator.replay(bars)
        logger.debug(f"✓ Cold start {key!r}: replayed {len(bars)} bars")
        return state, MetricResult(key=key, value=value, as_of=state.as_of)

    async def fetch_bars(self, symbol: str, indicator: BaseIndicator) -> list[Bar]:
        """Fetch the history an indicator needs (bar count, calendar span or everything)"""
        required = indicator.required_bars()
        if required is not None:
            return await self.store.get_latest_bars(symbol, required)

        if indicator.lookback_span is not None:
            latest = await self.store.get_latest_bars(symbol, 1)
            if not latest:
                return []
            return await self.store.get_bars(symbol, start=latest[-1].timestamp - indicator.lookback_span)

        return await self.store.get_bars(symbol)

    # ============================================
    # STATISTICS
    # ============================================

    async def _compute_statistic(self, key: MetricKey, statistic: BaseStatistic) -> tuple[object, datetime]:
        series = await self.return_series(key.symbol, statistic.window)
        if series.latest_timestamp is None:
            raise InsufficientDataError(f"{key!r}: No bars stored for {key.symbol}")

        benchmark = None
        if statistic.needs_benchmark:
            benchmark = await self.return_series(statistic.benchmark_symbol, statistic.window)

        return statistic.calculate(series, benchmark), series.latest_timestamp

    async def return_series(self, symbol: str, window: int) -> ReturnSeries:
        """
        Return series over the last `window` returns, memoised per (symbol, window)

        Shared by every statistic with the same window until the symbol gets
        a new bar or is invalidated.
        """
        memo_key = (symbol, window)
        series = self._series.get(memo_key)
        if series is not None:
            self._series.move_to_end(memo_key)
            self.series_hits += 1
            return series

        generation = self._series_generation.get(symbol, 0)
        bars = await self.store.get_latest_bars(symbol, window + 1)
        series = ReturnSeries.from_bars(symbol, bars)
        self.series_builds += 1

        if self._series_generation.get(symbol, 0) != generation:
            # A newer bar arrived while fetching: use once, do not memoise
            return series

        self._series[memo_key] = series
        if len(self._series) > self.max_memoized_series:
            self._series.popitem(last=False)
        return series

    def forget_series(self, symbol: str) -> int:
        """Drop memoised return series of a symbol"""
        self._series_generation[symbol] = self._series_generation.get(symbol, 0) + 1
        stale = [k for k in self._series if k[0] == symbol]
        for k in stale:
            del self._series[k]
        return len(stale)
