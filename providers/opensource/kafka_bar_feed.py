"""
Kafka implementation of the bar feed

Event-driven consumer for the daily bar topic
"""

import json
import logging
from collections.abc import AsyncIterator

from aiokafka import AIOKafkaConsumer
from pydantic import ValidationError

from config.settings import get_settings
from core.interfaces.feed import BaseBarFeed
from core.models.market_data import Bar

logger = logging.getLogger(__name__)


class KafkaBarFeed(BaseBarFeed):
    """
    Kafka bar feed

    Features:
    - Async message consumption
    - Auto-commit with configurable interval
    - Consumer group (one analytics instance per partition set)
    - JSON → Bar validation (invalid payloads logged and skipped)
    """

    def __init__(self, topic: str | None = None):
        self.settings = get_settings()
        self.topic = topic or self.settings.KAFKA_TOPIC_BARS
        self.consumer: AIOKafkaConsumer | None = None
        self.invalid_count = 0

    async def connect(self) -> None:
        """Initialize Kafka consumer"""
        try:
            self.consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self.settings.KAFKA_BOOTSTRAP_SERVERS,
                group_id=self.settings.KAFKA_CONSUMER_GROUP,
                value_deserializer=lambda v: json.loads(v.decode("utf-8")),
                auto_offset_reset="latest",  # Start from latest (not earliest)
                enable_auto_commit=True,
                auto_commit_interval_ms=1000,  # Commit every 1s
            )

            await self.consumer.start()

            logger.info(
                f"✓ Connected to Kafka bar feed: {self.settings.KAFKA_BOOTSTRAP_SERVERS} "
                f"(topic: {self.topic})"
            )
        except Exception as e:
            logger.error(f"✗ Failed to connect Kafka consumer: {e}")
            raise

    async def bars(self) -> AsyncIterator[Bar]:
        """
        Consume bars from the topic

        Yields:
            Validated Bar objects
        """
        if not self.consumer:
            raise RuntimeError("Kafka consumer not connected")

        try:
            async for message in self.consumer:
                logger.debug(
                    f"Consumed message from {message.topic}: "
                    f"Partition={message.partition}, Offset={message.offset}"
                )
                try:
                    yield Bar.model_validate(message.value)
                except ValidationError as e:
                    self.invalid_count += 1
                    logger.warning(f"⚠️ Skipping invalid bar payload at offset {message.offset}: {e}")

        except Exception as e:
            logger.error(f"✗ Kafka consume error: {e}", exc_info=True)
            raise

    async def close(self) -> None:
        """Cleanup connections"""
        if self.consumer:
            await self.consumer.stop()
            logger.info("✓ Kafka bar feed closed")
