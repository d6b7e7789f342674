"""
Abstract interface for new-bar event feeds
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from core.models.market_data import Bar


class BaseBarFeed(ABC):
    """
    Source of NewBar events pushed by the ingestion pipeline

    Implementations:
    - KafkaBarFeed (Open-source)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the event source"""

    @abstractmethod
    def bars(self) -> AsyncIterator[Bar]:
        """
        Consume new bars in arrival order

        Yields:
            Validated Bar objects

        Example:
            async for bar in feed.bars():
                engine.enqueue_bar(bar)
        """

    @abstractmethod
    async def close(self) -> None:
        """Cleanup connections"""
