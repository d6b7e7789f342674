"""
Update Dispatcher - NewBar → incremental recompute → cache → MetricsUpdated

Architecture:
    enqueue_bar() (put_nowait, fast)
        ↓
    ingest queue → router task → SymbolWorker.push()   (one worker task per symbol)
                                        ↓
                            pending bars (coalesced, bounded)
                                        ↓
            incremental keys: advance EngineState → cache.put()
            other keys: cache.mark_stale() (next reader recomputes)
                                        ↓
                            publisher.publish(MetricsUpdated)

Per-symbol state machine: IDLE → RECOMPUTING → IDLE.
EngineState lives in the worker and is never touched by anything else.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from enum import Enum

from config.loader import DispatcherConfig
from core.exceptions import AnalyticsError, OutOfOrderBarError
from core.interfaces.indicators import EngineState, IncrementalIndicator
from core.interfaces.publisher import BaseEventPublisher
from core.interfaces.store import BaseBarStore
from core.models.market_data import Bar
from core.models.metrics import MetricKey, MetricKind, MetricResult, MetricsUpdated
from core.validators.market_data import BarValidator
from domain.registry import MetricRegistry
from services.analytics_service.cache import CalculationCache
from services.analytics_service.calculator import MetricCalculator

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"


class SymbolWorker:
    """
    Recompute stream for one symbol

    Bars pushed while a pass is running are batched into the next pass.
    When the pending buffer overflows, the oldest bars are dropped and the
    next pass rebuilds incremental state from the store (catch-up).
    """

    def __init__(
        self,
        symbol: str,
        cache: CalculationCache,
        calculator: MetricCalculator,
        registry: MetricRegistry,
        publisher: BaseEventPublisher | None,
        max_pending: int,
    ):
        self.symbol = symbol
        self.cache = cache
        self.calculator = calculator
        self.registry = registry
        self.publisher = publisher

        self.pending: deque[Bar] = deque(maxlen=max_pending)
        self.states: dict[MetricKey, EngineState] = {}
        self.state = WorkerState.IDLE
        self.catch_up = False
        self.reset_all = False
        self.reset_kinds: set[MetricKind] = set()

        self._wakeup = asyncio.Event()
        self._stopping = False
        self.task: asyncio.Task | None = None

        # Metrics
        self.passes = 0
        self.bars_processed = 0
        self.coalesced_bars = 0
        self.dropped_pending = 0
        self.failures = 0

    def start(self) -> None:
        self.task = asyncio.create_task(self._run(), name=f"symbol-worker-{self.symbol}")

    def push(self, bar: Bar, catch_up: bool = False) -> None:
        if len(self.pending) == self.pending.maxlen:
            # deque drops the oldest; catch up from the store instead
            self.dropped_pending += 1
            catch_up = True
        if catch_up:
            self.catch_up = True
        self.pending.append(bar)
        self._wakeup.set()

    def request_reset(self, kind: MetricKind | None = None) -> None:
        """Discard EngineState before the next pass (after invalidation)"""
        if kind is None:
            self.reset_all = True
        else:
            self.reset_kinds.add(kind)

    def stop(self) -> None:
        self._stopping = True
        self._wakeup.set()

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()

            if self.pending:
                bars = list(self.pending)
                self.pending.clear()
                catch_up, self.catch_up = self.catch_up, False
                if len(bars) > 1:
                    self.coalesced_bars += len(bars) - 1

                self.state = WorkerState.RECOMPUTING
                try:
                    await self.process(bars, catch_up)
                except Exception as e:
                    self.failures += 1
                    logger.error(f"✗ Recompute pass failed for {self.symbol}: {e}", exc_info=True)
                finally:
                    self.state = WorkerState.IDLE

            if self._stopping and not self.pending:
                break

    async def process(self, bars: list[Bar], catch_up: bool = False) -> MetricsUpdated:
        """
        One recompute pass over newly accepted bars

        Steps:
        1. Reject puts of computations that started before these bars
        2. Advance every tracked incremental key
        3. Mark every other cached key stale (including dependents via benchmark tag)
        4. Publish MetricsUpdated (plus a stale-only event per dependent symbol)
        """
        if self.reset_all:
            self.states.clear()
        elif self.reset_kinds:
            self.states = {k: s for k, s in self.states.items() if k.kind not in self.reset_kinds}
        self.reset_all = False
        self.reset_kinds.clear()

        self.passes += 1
        self.bars_processed += len(bars)
        as_of = bars[-1].timestamp

        self.cache.bump_generation(self.symbol)
        self.calculator.forget_series(self.symbol)

        # Expired keys are no longer tracked: their EngineState goes with them
        keys = {k for k in self.cache.keys_for_tag(self.symbol) if self.cache.peek(k) is not None}
        self.states = {k: s for k, s in self.states.items() if k in keys}

        updated: list[MetricKey] = []
        stale: list[MetricKey] = []

        for key in sorted(keys, key=lambda k: k.cache_key):
            if key.symbol != self.symbol or not self.registry.is_incremental(key.kind):
                stale.append(key)
                continue

            generation = self.cache.generation(key)
            try:
                result = await self._advance(key, bars, catch_up)
            except AnalyticsError as e:
                logger.warning(f"✗ {key!r}: {e}")
                self.states.pop(key, None)
                stale.append(key)
                continue
            except Exception as e:
                self.failures += 1
                logger.error(f"✗ {key!r}: unexpected recompute error: {e}", exc_info=True)
                self.states.pop(key, None)
                stale.append(key)
                continue

            if self.cache.put(key, result, generation):
                updated.append(key)

        stale = self.cache.mark_stale(stale)

        event = MetricsUpdated(symbol=self.symbol, updated_keys=updated, stale_keys=stale, as_of=as_of)
        await self._publish(event)

        # Keys of other symbols that use this one as benchmark
        dependents: dict[str, list[MetricKey]] = defaultdict(list)
        for key in stale:
            if key.symbol != self.symbol:
                dependents[key.symbol].append(key)
        for symbol, dependent_keys in dependents.items():
            await self._publish(MetricsUpdated(symbol=symbol, stale_keys=dependent_keys, as_of=as_of))

        logger.debug(
            f"✓ {self.symbol}: {len(bars)} bar(s) → {len(updated)} updated, {len(stale)} stale"
        )
        return event

    async def _advance(self, key: MetricKey, bars: list[Bar], catch_up: bool) -> MetricResult:
        indicator: IncrementalIndicator = self.registry.create(key)
        state = self.states.get(key)

        if state is None or catch_up:
            state, result = await self.calculator.cold_start(key, indicator)
            self.states[key] = state
            return result

        # Advance a copy so a failure leaves the previous state intact
        working, value = indicator.replay(bars, state.snapshot())
        self.states[key] = working
        return MetricResult(key=key, value=value, as_of=working.as_of)

    async def _publish(self, event: MetricsUpdated) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish(event)
        except Exception as e:
            # Subscribers never fail ingestion
            logger.error(f"✗ Failed to publish MetricsUpdated for {event.symbol}: {e}")


class UpdateDispatcher:
    """
    Routes new bars to per-symbol workers

    Features:
    - Ordering validation (strictly increasing timestamps per symbol)
    - Bounded ingest queue with drop-rate tracking
    - Lazy worker creation, fully parallel across symbols
    - Graceful drain on stop()
    """

    def __init__(
        self,
        store: BaseBarStore,
        cache: CalculationCache,
        calculator: MetricCalculator,
        registry: MetricRegistry,
        publisher: BaseEventPublisher | None,
        config: DispatcherConfig,
    ):
        self.store = store
        self.cache = cache
        self.calculator = calculator
        self.registry = registry
        self.publisher = publisher
        self.config = config

        self.validator = BarValidator()
        self.workers: dict[str, SymbolWorker] = {}

        self._queue: asyncio.Queue | None = None
        self._router_task: asyncio.Task | None = None
        self._dropped_count = 0
        self._drop_rate_window: list[float] = []
        self._rejected_count = 0
        # Symbols that lost a bar to a full ingest queue; their next pass catches up
        self._gapped_symbols: set[str] = set()

        # Sentinel for clean shutdown
        self._SENTINEL = object()

    async def start(self) -> None:
        self._queue = asyncio.Queue(maxsize=self.config.ingest_queue_size)
        self._router_task = asyncio.create_task(self._route(), name="bar-router")
        logger.info(f"✓ Update dispatcher started (ingest queue size: {self.config.ingest_queue_size})")

    # ============================================
    # INGESTION
    # ============================================

    def enqueue_bar(self, bar: Bar) -> dict[str, str]:
        """
        Enqueue bar for processing (SYNC, NON-BLOCKING)

        Returns:
            {"status": "queued"} or {"status": "dropped"}
        """
        if not self._queue:
            raise RuntimeError("Update dispatcher not started")

        try:
            self._queue.put_nowait(bar)
            return {"status": "queued"}
        except asyncio.QueueFull:
            now = time.time()
            self._dropped_count += 1
            self._gapped_symbols.add(bar.symbol)
            self._drop_rate_window.append(now)

            # Keep only last 60 seconds for rate calculation
            cutoff = now - 60
            self._drop_rate_window = [t for t in self._drop_rate_window if t > cutoff]

            drop_rate = len(self._drop_rate_window) / 60  # drops/sec

            if drop_rate > 10:
                logger.error(
                    f"🚨 PANIC: Bar drop rate {drop_rate:.1f}/sec exceeds threshold! "
                    f"Ingest queue full, total dropped: {self._dropped_count}"
                )
            else:
                logger.warning(
                    f"Ingest queue full, dropping bar: {bar.symbol}@{bar.timestamp} "
                    f"(rate: {drop_rate:.1f}/sec, total: {self._dropped_count})"
                )
            return {"status": "dropped"}

    async def submit_bar(self, bar: Bar) -> None:
        """
        Validate ordering and hand the bar to its symbol worker

        Raises:
            OutOfOrderBarError: Timestamp not after the symbol's last known bar
        """
        await self._check_order(bar)

        gapped = bar.symbol in self._gapped_symbols
        self._gapped_symbols.discard(bar.symbol)
        if gapped:
            logger.info(f"⚠️ {bar.symbol}: bars were dropped upstream, rebuilding state from store")
        self._worker_for(bar.symbol).push(bar, catch_up=gapped)

    async def _check_order(self, bar: Bar) -> None:
        if self.validator.last_timestamp(bar.symbol) is None:
            # First bar seen for the symbol: the store may already hold newer history
            latest = await self.store.get_latest_bars(bar.symbol, 1)
            if latest and latest[-1].timestamp > bar.timestamp:
                self._rejected_count += 1
                raise OutOfOrderBarError(
                    f"Out-of-order bar for {bar.symbol}: {bar.timestamp} "
                    f"is before stored {latest[-1].timestamp}"
                )

        is_valid, error = self.validator.validate_bar(bar)
        if not is_valid:
            self._rejected_count += 1
            raise OutOfOrderBarError(error)

    async def _route(self) -> None:
        while True:
            bar = await self._queue.get()
            try:
                if bar is self._SENTINEL:
                    break
                await self.submit_bar(bar)
            except OutOfOrderBarError as e:
                logger.warning(f"⚠️ Dropped bar: {e}")
            except Exception as e:
                logger.error(f"✗ Failed to route bar: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _worker_for(self, symbol: str) -> SymbolWorker:
        worker = self.workers.get(symbol)
        if worker is None:
            worker = SymbolWorker(
                symbol=symbol,
                cache=self.cache,
                calculator=self.calculator,
                registry=self.registry,
                publisher=self.publisher,
                max_pending=self.config.max_pending_bars_per_symbol,
            )
            worker.start()
            self.workers[symbol] = worker
            logger.debug(f"Started worker for {symbol}")
        return worker

    # ============================================
    # ADMIN
    # ============================================

    def reset_symbol(self, symbol: str, kind: MetricKind | None = None) -> None:
        """Drop EngineState of a symbol's worker (rebuilt from history on next bar)"""
        worker = self.workers.get(symbol.upper())
        if worker is not None:
            worker.request_reset(kind)

    def get_stats(self) -> dict[str, object]:
        return {
            "queued": self._queue.qsize() if self._queue else 0,
            "dropped": self._dropped_count,
            "rejected": self._rejected_count,
            "workers": {
                symbol: {
                    "state": worker.state.value,
                    "pending": len(worker.pending),
                    "passes": worker.passes,
                    "bars_processed": worker.bars_processed,
                    "coalesced_bars": worker.coalesced_bars,
                    "dropped_pending": worker.dropped_pending,
                    "failures": worker.failures,
                }
                for symbol, worker in self.workers.items()
            },
            "validation": self.validator.get_stats(),
        }

    async def stop(self) -> None:
        """
        Drain the ingest queue, let workers finish their pending batch, then stop

        Workers that do not finish within shutdown_timeout_seconds are cancelled
        and every cached entry for their symbol is marked stale.
        """
        timeout = self.config.shutdown_timeout_seconds

        if self._router_task:
            await self._queue.put(self._SENTINEL)
            try:
                await asyncio.wait_for(self._router_task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Bar router didn't finish in {timeout}s, cancelling")
                self._router_task.cancel()
                try:
                    await self._router_task
                except asyncio.CancelledError:
                    pass
            self._router_task = None

        for worker in self.workers.values():
            worker.stop()

        for symbol, worker in self.workers.items():
            try:
                await asyncio.wait_for(worker.task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Worker {symbol} didn't finish in {timeout}s, cancelling")
                worker.task.cancel()
                try:
                    await worker.task
                except asyncio.CancelledError:
                    pass
                self.cache.mark_stale(list(self.cache.keys_for_tag(symbol)))

        self.workers.clear()

        if self._dropped_count > 0:
            logger.warning(f"Dispatcher dropped {self._dropped_count} bars total due to queue full")

        logger.info("✓ Update dispatcher stopped and queue drained")
