"""
Abstract interface for MetricsUpdated publish/subscribe
"""

from abc import ABC, abstractmethod

from core.models.metrics import MetricsUpdated


class Subscription(ABC):
    """
    Stream of MetricsUpdated events for one symbol

    Usage:
        sub = await publisher.subscribe("AAPL")
        async for event in sub:
            push_to_client(event)
    """

    def __init__(self, symbol: str):
        self.symbol = symbol.upper()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> MetricsUpdated:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    @abstractmethod
    async def get(self, timeout: float | None = None) -> MetricsUpdated | None:
        """
        Wait for the next event

        Returns:
            Next event, or None once the subscription is closed

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving events"""


class BaseEventPublisher(ABC):
    """
    Publish contract for live-update pushers

    Implementations:
    - InMemoryEventBus (in-process subscribers)
    - RedisEventPublisher (Redis pub/sub, cross-process)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the transport"""

    @abstractmethod
    async def publish(self, event: MetricsUpdated) -> int:
        """
        Publish an event to every subscriber of event.symbol

        Must never block on slow consumers.

        Returns:
            Number of subscribers the event was delivered to
        """

    @abstractmethod
    async def subscribe(self, symbol: str) -> Subscription:
        """Subscribe to MetricsUpdated events for a symbol"""

    @abstractmethod
    async def close(self) -> None:
        """Close all subscriptions and connections"""
