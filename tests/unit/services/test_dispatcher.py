"""
Unit tests for UpdateDispatcher and SymbolWorker
"""

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest

from config.loader import DispatcherConfig
from core.models.metrics import EmaParams, MetricKey, MetricKind
from domain.indicators import EMA
from domain.registry import MetricRegistry
from providers.memory.bar_store import InMemoryBarStore
from services.analytics_service.cache import CalculationCache
from services.analytics_service.calculator import MetricCalculator
from services.analytics_service.dispatcher import SymbolWorker, UpdateDispatcher, WorkerState


@pytest.fixture
def history(bars_factory, known_closes):
    return bars_factory(known_closes)


@pytest.fixture
def store(history):
    return InMemoryBarStore(history)


@pytest.fixture
def cache(analytics_config):
    return CalculationCache(analytics_config.cache)


@pytest.fixture
def registry(statistics_config):
    return MetricRegistry(statistics_config)


@pytest.fixture
def calculator(store, registry):
    return MetricCalculator(store, registry)


@pytest.fixture
def publisher():
    return AsyncMock()


@pytest.fixture
def worker(cache, calculator, registry, publisher):
    return SymbolWorker("AAPL", cache, calculator, registry, publisher, max_pending=3)


async def seed(cache, calculator, key):
    cache.put(key, await calculator.compute(key))


class TestSymbolWorker:
    def test_pending_overflow_triggers_catch_up(self, worker, bar_factory):
        for day in range(5):
            worker.push(bar_factory(100.0, day=day))

        assert len(worker.pending) == 3
        assert worker.pending[0].timestamp == bar_factory(100.0, day=2).timestamp
        assert worker.dropped_pending == 2
        assert worker.catch_up is True
        assert worker.state == WorkerState.IDLE

    @pytest.mark.asyncio
    async def test_coalesced_bars_single_pass(self, worker, cache, calculator, store, history, bar_factory, publisher):
        key = MetricKey.create("AAPL", "EMA", {"period": 3})
        await seed(cache, calculator, key)
        await worker.process([history[-1]])

        new_bars = [bar_factory(46.0 + i, day=40 + i) for i in range(3)]
        store.add_bars(new_bars)

        event = await worker.process(new_bars)

        expected = EMA(EmaParams(period=3)).calculate(history + new_bars)
        assert event.updated_keys == [key]
        assert event.as_of == new_bars[-1].timestamp
        assert cache.get(key)[0].value == pytest.approx(expected, rel=1e-12)
        assert publisher.publish.await_count == 2

    @pytest.mark.asyncio
    async def test_catch_up_rebuilds_from_store(self, worker, cache, calculator, store, history, bar_factory):
        key = MetricKey.create("AAPL", "EMA", {"period": 3})
        await seed(cache, calculator, key)
        await worker.process([history[-1]])

        new_bars = [bar_factory(46.0 + i, day=40 + i) for i in range(4)]
        store.add_bars(new_bars)

        # Only the newest bar survived the overflow
        await worker.process(new_bars[-1:], catch_up=True)

        expected = EMA(EmaParams(period=3)).calculate(history + new_bars)
        assert cache.get(key)[0].value == pytest.approx(expected, rel=1e-12)

    @pytest.mark.asyncio
    async def test_failed_key_isolated(self, worker, cache, calculator, store, bar_factory):
        ema_key = MetricKey.create("AAPL", "EMA", {"period": 3})
        await seed(cache, calculator, ema_key)
        # Cached from an older, longer history, then the store was truncated
        long_key = MetricKey.create("AAPL", "SMA", {"period": 30})
        await seed(cache, calculator, long_key)
        store.replace_history("AAPL", [bar_factory(40.0 + i, day=30 + i) for i in range(10)])

        bar = bar_factory(55.0, day=40)
        store.add_bar(bar)
        event = await worker.process([bar])

        assert event.updated_keys == [ema_key]
        assert event.stale_keys == [long_key]
        assert long_key not in worker.states

    @pytest.mark.asyncio
    async def test_reset_kind_drops_only_that_state(self, worker, cache, calculator, history):
        ema_key = MetricKey.create("AAPL", "EMA", {"period": 3})
        rsi_key = MetricKey.create("AAPL", "RSI", {"period": 14})
        await seed(cache, calculator, ema_key)
        await seed(cache, calculator, rsi_key)
        await worker.process([history[-1]])
        rsi_state = worker.states[rsi_key]

        worker.request_reset(MetricKind.EMA)
        cache.invalidate(ema_key)
        await worker.process([history[-1]])

        assert ema_key not in worker.states
        assert worker.states[rsi_key].as_of == rsi_state.as_of

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_pass(self, worker, cache, calculator, history, publisher):
        publisher.publish.side_effect = ConnectionError("redis down")
        key = MetricKey.create("AAPL", "EMA", {"period": 3})
        await seed(cache, calculator, key)

        event = await worker.process([history[-1]])

        assert event.updated_keys == [key]

    @pytest.mark.asyncio
    async def test_expired_key_drops_state(self, calculator, registry, publisher, analytics_config, history):
        now = [1000.0]
        cache = CalculationCache(analytics_config.cache, clock=lambda: now[0])
        worker = SymbolWorker("AAPL", cache, calculator, registry, publisher, max_pending=3)
        key = MetricKey.create("AAPL", "EMA", {"period": 3})
        await seed(cache, calculator, key)
        await worker.process([history[-1]])
        assert key in worker.states

        now[0] += analytics_config.cache.default_ttl_seconds + 1
        event = await worker.process([history[-1]])

        assert worker.states == {}
        assert event.updated_keys == []
        assert cache.peek(key) is None

    @pytest.mark.asyncio
    async def test_dependent_symbol_gets_stale_event(
        self, cache, calculator, registry, publisher, store, bars_factory, known_closes
    ):
        spy_bars = bars_factory(known_closes[::-1], symbol="SPY")
        store.add_bars(spy_bars)
        beta_key = MetricKey.create("AAPL", "BETA", {"benchmark": "SPY", "window": 20})
        await seed(cache, calculator, beta_key)
        spy_worker = SymbolWorker("SPY", cache, calculator, registry, publisher, max_pending=3)

        await spy_worker.process(spy_bars[-1:])

        events = [call.args[0] for call in publisher.publish.await_args_list]
        assert [e.symbol for e in events] == ["SPY", "AAPL"]
        assert events[1].stale_keys == [beta_key]
        assert events[1].updated_keys == []


class TestUpdateDispatcher:
    @pytest.fixture
    def dispatcher(self, store, cache, calculator, registry, publisher):
        return UpdateDispatcher(
            store=store,
            cache=cache,
            calculator=calculator,
            registry=registry,
            publisher=publisher,
            config=DispatcherConfig(ingest_queue_size=10, shutdown_timeout_seconds=2),
        )

    def test_enqueue_before_start(self, dispatcher, history):
        with pytest.raises(RuntimeError):
            dispatcher.enqueue_bar(history[-1])

    @pytest.mark.asyncio
    async def test_one_worker_per_symbol(self, dispatcher, store, bar_factory):
        await dispatcher.start()
        try:
            for symbol, day in (("AAPL", 40), ("MSFT", 0), ("AAPL", 41)):
                bar = bar_factory(50.0, day=day, symbol=symbol)
                store.add_bar(bar)
                await dispatcher.submit_bar(bar)

            assert set(dispatcher.workers) == {"AAPL", "MSFT"}
        finally:
            await dispatcher.stop()

        assert dispatcher.workers == {}

    @pytest.mark.asyncio
    async def test_stats(self, dispatcher):
        await dispatcher.start()
        try:
            stats = dispatcher.get_stats()
        finally:
            await dispatcher.stop()

        assert stats["queued"] == 0
        assert stats["dropped"] == 0
        assert stats["validation"]["symbols_tracked"] == 0

    @pytest.mark.asyncio
    async def test_dropped_bar_forces_catch_up(self, store, cache, calculator, registry, publisher, bar_factory):
        dispatcher = UpdateDispatcher(
            store=store,
            cache=cache,
            calculator=calculator,
            registry=registry,
            publisher=publisher,
            config=DispatcherConfig(ingest_queue_size=1, shutdown_timeout_seconds=2),
        )
        bars = [bar_factory(46.0 + i, day=40 + i) for i in range(4)]
        store.add_bars(bars)

        await dispatcher.start()
        try:
            with patch.object(SymbolWorker, "push", autospec=True) as push:
                assert dispatcher.enqueue_bar(bars[0]) == {"status": "queued"}
                assert dispatcher.enqueue_bar(bars[1]) == {"status": "dropped"}
                await dispatcher._queue.join()
                await dispatcher.submit_bar(bars[2])

            # The first bar routed after the drop rebuilds from the store
            worker = dispatcher.workers["AAPL"]
            assert push.call_args_list == [
                call(worker, bars[0], catch_up=True),
                call(worker, bars[2], catch_up=False),
            ]
        finally:
            await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_stuck_worker_and_marks_stale(
        self, store, cache, calculator, registry, publisher, bar_factory
    ):
        dispatcher = UpdateDispatcher(
            store=store,
            cache=cache,
            calculator=calculator,
            registry=registry,
            publisher=publisher,
            config=DispatcherConfig(ingest_queue_size=10, shutdown_timeout_seconds=0.1),
        )
        ema_key = MetricKey.create("AAPL", "EMA", {"period": 3})
        sma_key = MetricKey.create("AAPL", "SMA", {"period": 5})
        await seed(cache, calculator, ema_key)
        await seed(cache, calculator, sma_key)

        async def never_finishes(*args):
            await asyncio.Event().wait()

        bar = bar_factory(47.0, day=40)
        store.add_bar(bar)

        await dispatcher.start()
        with patch.object(calculator, "cold_start", side_effect=never_finishes):
            await dispatcher.submit_bar(bar)
            await dispatcher.stop()

        assert dispatcher.workers == {}
        assert cache.peek(ema_key).stale
        assert cache.peek(sma_key).stale
        publisher.publish.assert_not_awaited()
