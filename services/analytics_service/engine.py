"""
Analytics Engine - Facade over cache, calculator and dispatcher

Exposed operations:
- query(): cache-aside read, single-flight on miss, bounded wait
- query_many(): several metrics of one symbol, errors isolated per metric
- ema_fan() / ema_fan_summary(): EMA fan ranking across symbols
- subscribe(): stream of MetricsUpdated events
- invalidate(): drop cached results + EngineState after a history correction
- submit_bar() / enqueue_bar(): NewBar ingestion
- warm_up(): precompute the configured default metric set

Architecture:
    query() → CalculationCache.get_or_compute() → MetricCalculator.compute() → BaseBarStore
    submit_bar() → UpdateDispatcher → SymbolWorker → CalculationCache → BaseEventPublisher
"""

import asyncio
import logging
from typing import Any

from config.loader import AnalyticsConfig
from core.exceptions import AnalyticsError, InvalidParametersError
from core.interfaces.publisher import BaseEventPublisher, Subscription
from core.interfaces.store import BaseBarStore
from core.models.market_data import Bar
from core.models.metrics import (
    EmaFanSummary,
    EmaFanValue,
    MetricKey,
    MetricKind,
    MetricParams,
    MetricResult,
)
from domain.indicators.fan import rank_ema_fans, score_ema_fan, summarize_ema_fans
from domain.registry import MetricRegistry
from providers.memory.event_bus import InMemoryEventBus
from services.analytics_service.cache import CalculationCache
from services.analytics_service.calculator import MetricCalculator
from services.analytics_service.dispatcher import UpdateDispatcher
from services.analytics_service.metric_loader import MetricLoader

logger = logging.getLogger(__name__)

MetricSpec = tuple[MetricKind | str, dict[str, Any] | MetricParams | None]


class AnalyticsEngine:
    """
    Time-series calculation & cache engine

    Example:
        >>> engine = AnalyticsEngine(store, config)
        >>> await engine.start()
        >>> result = await engine.query("AAPL", "RSI", {"period": 14})
        >>> result.value
        57.3
        >>> await engine.stop()
    """

    def __init__(
        self,
        store: BaseBarStore,
        config: AnalyticsConfig,
        publisher: BaseEventPublisher | None = None,
        cache: CalculationCache | None = None,
    ):
        self.store = store
        self.config = config
        self.publisher = publisher or InMemoryEventBus(queue_size=config.subscriptions.queue_size)

        self.registry = MetricRegistry(config.statistics)
        self.cache = cache or CalculationCache(config.cache)
        self.calculator = MetricCalculator(store, self.registry)
        self.dispatcher = UpdateDispatcher(
            store=store,
            cache=self.cache,
            calculator=self.calculator,
            registry=self.registry,
            publisher=self.publisher,
            config=config.dispatcher,
        )
        self.warmup_specs = MetricLoader.load_specs(config.warmup)
        self.running = False

    async def start(self) -> None:
        """Start the dispatcher (store/publisher connections are owned by the caller)"""
        await self.dispatcher.start()
        self.running = True
        logger.info("✓ Analytics engine started")

    async def stop(self) -> None:
        """Drain ingestion and in-flight computations"""
        if not self.running:
            return
        self.running = False

        await self.dispatcher.stop()
        await self.cache.close(timeout=self.config.dispatcher.shutdown_timeout_seconds)
        logger.info("✓ Analytics engine stopped")

    # ============================================
    # QUERIES
    # ============================================

    async def query(
        self,
        symbol: str,
        kind: MetricKind | str,
        params: dict[str, Any] | MetricParams | None = None,
        timeout: float | None = None,
    ) -> MetricResult:
        """
        Read one metric (cache-aside)

        Raises:
            InvalidParametersError: Before any computation
            InsufficientDataError / DegenerateInputError: From the engine
            ComputationTimeoutError: Bounded wait exceeded (retryable)
        """
        key = MetricKey.create(symbol, kind, params)
        return await self.query_key(key, timeout)

    async def query_key(self, key: MetricKey, timeout: float | None = None) -> MetricResult:
        return await self.cache.get_or_compute(key, lambda: self.calculator.compute(key), timeout)

    async def query_many(
        self,
        symbol: str,
        specs: list[MetricSpec],
        timeout: float | None = None,
    ) -> list[MetricResult | AnalyticsError]:
        """
        Read several metrics concurrently

        Returns:
            One entry per spec, in order: the result, or the AnalyticsError
            raised for that metric alone
        """

        async def one(kind, params) -> MetricResult | AnalyticsError:
            try:
                return await self.query(symbol, kind, params, timeout)
            except AnalyticsError as e:
                logger.debug(f"✗ {symbol} {kind}: {e}")
                return e

        return list(await asyncio.gather(*(one(kind, params) for kind, params in specs)))

    async def warm_up(self, symbols: list[str] | None = None) -> dict[str, int]:
        """
        Precompute the configured default metric set

        Args:
            symbols: Symbols to warm (defaults to warmup.symbols from config)

        Returns:
            {symbol: number of metrics computed}
        """
        symbols = symbols if symbols is not None else self.config.warmup.symbols
        summary = {}

        for symbol in symbols:
            results = await self.query_many(symbol, self.warmup_specs)
            computed = sum(1 for r in results if isinstance(r, MetricResult))
            failed = len(results) - computed
            summary[symbol.upper()] = computed

            if failed:
                logger.warning(f"⚠️ Warm-up {symbol}: {computed} computed, {failed} failed")
            else:
                logger.info(f"✓ Warm-up {symbol}: {computed} metrics")

        return summary

    # ============================================
    # EMA FAN
    # ============================================

    async def ema_fan(self, symbols: list[str], limit: int | None = None) -> list[EmaFanValue]:
        """
        Rank symbols by EMA fan alignment (e.g. EMA18 > EMA50 > EMA100 > EMA200)

        EMAs are read through the cache like any other query. A symbol
        without enough history for an EMA scores 0.

        Args:
            symbols: Symbols to analyze
            limit: Keep only the best N (None = all)

        Returns:
            Best fans first
        """
        periods = self.config.ema_fan.periods
        specs = [(MetricKind.EMA, {"period": p}) for p in periods]

        async def one(symbol: str) -> EmaFanValue:
            results = await self.query_many(symbol, specs)
            emas = [r.value if isinstance(r, MetricResult) else None for r in results]
            score, is_perfect, fan_strength = score_ema_fan(emas)

            latest = await self.store.get_latest_bars(symbol, 1)
            as_of = max((r.as_of for r in results if isinstance(r, MetricResult)), default=None)
            return EmaFanValue(
                symbol=symbol.upper(),
                latest_price=latest[-1].close if latest else None,
                emas=dict(zip(periods, emas)),
                score=score,
                is_perfect=is_perfect,
                fan_strength=fan_strength,
                as_of=as_of,
            )

        values = await asyncio.gather(*(one(s) for s in symbols))
        ranked = rank_ema_fans(list(values), limit)
        logger.info(
            f"✓ EMA fan: {sum(1 for v in values if v.is_perfect)}/{len(values)} perfect"
        )
        return ranked

    async def ema_fan_summary(self, symbols: list[str]) -> EmaFanSummary:
        """Perfect-fan count, score distribution and average fan strength"""
        return summarize_ema_fans(await self.ema_fan(symbols))

    # ============================================
    # LIVE UPDATES
    # ============================================

    async def subscribe(self, symbol: str) -> Subscription:
        """Subscribe to MetricsUpdated events for a symbol"""
        return await self.publisher.subscribe(symbol)

    async def submit_bar(self, bar: Bar) -> None:
        """
        Ingest a new bar (already persisted in the store)

        Raises:
            OutOfOrderBarError: Stale or duplicate bar (nothing changes)
        """
        await self.dispatcher.submit_bar(bar)

    def enqueue_bar(self, bar: Bar) -> dict[str, str]:
        """Non-blocking ingestion: {"status": "queued"} or {"status": "dropped"}"""
        return self.dispatcher.enqueue_bar(bar)

    # ============================================
    # ADMIN
    # ============================================

    def invalidate(self, symbol: str, kind: MetricKind | str | None = None) -> list[MetricKey]:
        """
        Invalidate cached metrics after a history correction

        Args:
            symbol: Symbol whose history changed
            kind: Restrict to one metric kind (None = every metric tagged with the symbol)

        Returns:
            Keys removed from the cache
        """
        symbol = symbol.upper()
        self.calculator.forget_series(symbol)

        if kind is None:
            removed = self.cache.invalidate_tag(symbol)
            self.dispatcher.reset_symbol(symbol)
            return removed

        try:
            kind = MetricKind(kind)
        except ValueError as e:
            raise InvalidParametersError(f"Unknown metric kind: {kind}") from e

        removed = self.cache.invalidate_kind(symbol, kind)
        self.dispatcher.reset_symbol(symbol, kind)
        return removed

    def stats(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "cache": self.cache.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "return_series": {
                "hits": self.calculator.series_hits,
                "builds": self.calculator.series_builds,
            },
        }
