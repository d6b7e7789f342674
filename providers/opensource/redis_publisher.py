"""
Redis implementation of the MetricsUpdated publisher

Pub/sub fan-out across processes (e.g. to WebSocket pushers).
Channel: {REDIS_CHANNEL_PREFIX}:{SYMBOL}, body: MetricsUpdated JSON
"""

import asyncio
import logging

from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from config.settings import get_settings
from core.interfaces.publisher import BaseEventPublisher, Subscription
from core.models.metrics import MetricsUpdated

logger = logging.getLogger(__name__)


class RedisSubscription(Subscription):
    """Subscription over a Redis pub/sub channel"""

    def __init__(self, symbol: str, pubsub: PubSub, channel: str):
        super().__init__(symbol)
        self.pubsub = pubsub
        self.channel = channel
        self._closed = False

    async def get(self, timeout: float | None = None) -> MetricsUpdated | None:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while not self._closed:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                raise asyncio.TimeoutError(f"No MetricsUpdated on {self.channel} within {timeout}s")

            poll = 1.0 if remaining is None else min(1.0, remaining)
            message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=poll)
            if message is None or message.get("type") != "message":
                continue

            try:
                return MetricsUpdated.model_validate_json(message["data"])
            except Exception as e:
                logger.error(f"✗ Invalid MetricsUpdated payload on {self.channel}: {e}")

        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.pubsub.unsubscribe(self.channel)
        await self.pubsub.aclose()


class RedisEventPublisher(BaseEventPublisher):
    """
    Redis pub/sub implementation

    Features:
    - Fire-and-forget PUBLISH (never waits on consumers)
    - One channel per symbol
    - JSON payloads (MetricsUpdated.model_dump_json())
    """

    def __init__(self):
        self.settings = get_settings()
        self.client: Redis | None = None

    def channel(self, symbol: str) -> str:
        return f"{self.settings.REDIS_CHANNEL_PREFIX}:{symbol.upper()}"

    async def connect(self) -> None:
        """Connect to Redis"""
        try:
            self.client = Redis.from_url(self.settings.redis_url, decode_responses=True)
            # Test connection
            await self.client.ping()
            logger.info(
                f"✓ Connected to Redis: {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}"
            )
        except Exception as e:
            logger.error(f"✗ Failed to connect to Redis: {e}")
            raise

    async def publish(self, event: MetricsUpdated) -> int:
        """PUBLISH event, returns number of receiving clients"""
        if not self.client:
            raise RuntimeError("Redis client not connected")

        try:
            return await self.client.publish(self.channel(event.symbol), event.model_dump_json())
        except Exception as e:
            logger.error(f"✗ Redis PUBLISH error: {e}")
            raise

    async def subscribe(self, symbol: str) -> RedisSubscription:
        if not self.client:
            raise RuntimeError("Redis client not connected")

        channel = self.channel(symbol)
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        logger.debug(f"Subscribed to {channel}")
        return RedisSubscription(symbol, pubsub, channel)

    async def close(self) -> None:
        """Close connection"""
        if self.client:
            await self.client.aclose()
            logger.info("✓ Redis connection closed")
