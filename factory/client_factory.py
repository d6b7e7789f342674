"""
Client factory - Auto-create clients based on configuration

Dependency injection pattern for provider-agnostic code
"""

import logging

from config.settings import get_settings
from core.interfaces.feed import BaseBarFeed
from core.interfaces.publisher import BaseEventPublisher
from core.interfaces.store import BaseBarStore

logger = logging.getLogger(__name__)


def create_bar_store() -> BaseBarStore:
    """
    Create bar store based on BAR_STORE_PROVIDER config

    Returns:
        BaseBarStore: InMemoryBarStore (memory) or ClickHouseBarStore (clickhouse)

    Examples:
        >>> # .env: BAR_STORE_PROVIDER=clickhouse
        >>> store = create_bar_store()  # Returns ClickHouseBarStore
    """
    settings = get_settings()
    provider = settings.BAR_STORE_PROVIDER.lower()

    if provider == "memory":
        from providers.memory.bar_store import InMemoryBarStore

        logger.info("✓ Creating InMemoryBarStore (memory)")
        return InMemoryBarStore()

    elif provider == "clickhouse":
        from providers.opensource.clickhouse import ClickHouseBarStore

        logger.info("✓ Creating ClickHouseBarStore (clickhouse)")
        return ClickHouseBarStore()

    else:
        raise ValueError(
            f"Unsupported bar store provider: {provider}. Supported: memory, clickhouse"
        )


def create_event_publisher(queue_size: int = 100) -> BaseEventPublisher:
    """
    Create MetricsUpdated publisher based on EVENT_PUBLISHER config

    Args:
        queue_size: Per-subscriber queue size (in-memory bus only)

    Returns:
        BaseEventPublisher: InMemoryEventBus (memory) or RedisEventPublisher (redis)
    """
    settings = get_settings()
    provider = settings.EVENT_PUBLISHER.lower()

    if provider == "memory":
        from providers.memory.event_bus import InMemoryEventBus

        logger.info("✓ Creating InMemoryEventBus (memory)")
        return InMemoryEventBus(queue_size=queue_size)

    elif provider == "redis":
        from providers.opensource.redis_publisher import RedisEventPublisher

        logger.info("✓ Creating RedisEventPublisher (redis)")
        return RedisEventPublisher()

    else:
        raise ValueError(f"Unsupported event publisher: {provider}. Supported: memory, redis")


def create_bar_feed() -> BaseBarFeed | None:
    """
    Create live bar feed based on BAR_FEED_PROVIDER config

    Returns:
        BaseBarFeed: KafkaBarFeed (kafka), or None when no live feed is configured
    """
    settings = get_settings()
    provider = settings.BAR_FEED_PROVIDER.lower()

    if provider == "none":
        logger.info("No live bar feed configured")
        return None

    elif provider == "kafka":
        from providers.opensource.kafka_bar_feed import KafkaBarFeed

        logger.info("✓ Creating KafkaBarFeed (kafka)")
        return KafkaBarFeed()

    else:
        raise ValueError(f"Unsupported bar feed provider: {provider}. Supported: none, kafka")
