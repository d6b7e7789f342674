"""
Integration tests against Docker services (ClickHouse, Redis)

Run with: pytest -m integration
Skipped when the services are not reachable.
"""

import asyncio
from datetime import UTC, datetime

import pytest

from core.models.metrics import MetricKey, MetricsUpdated
from providers.opensource.clickhouse import ClickHouseBarStore
from providers.opensource.redis_publisher import RedisEventPublisher

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_clickhouse_latest_bars_ascending():
    store = ClickHouseBarStore()
    try:
        await store.connect()
    except Exception as e:
        pytest.skip(f"ClickHouse not available: {e}")

    try:
        bars = await store.get_latest_bars("AAPL", 5)
        timestamps = [b.timestamp for b in bars]
        assert timestamps == sorted(timestamps)
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_redis_publish_subscribe_round_trip():
    publisher = RedisEventPublisher()
    try:
        await publisher.connect()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")

    try:
        subscription = await publisher.subscribe("ITEST")
        event = MetricsUpdated(
            symbol="ITEST",
            updated_keys=[MetricKey.create("ITEST", "RSI", {"period": 14})],
            as_of=datetime(2024, 1, 2, tzinfo=UTC),
        )

        # Give the SUBSCRIBE a moment to register server-side
        await asyncio.sleep(0.1)
        delivered = await publisher.publish(event)
        received = await subscription.get(timeout=5)

        assert delivered >= 1
        assert received == event
        await subscription.close()
    finally:
        await publisher.close()
