"""
In-process implementation of the MetricsUpdated publisher

Each subscriber gets its own bounded queue. A full queue drops its oldest
event, so a slow consumer only loses its own history and never blocks
ingestion.
"""

import asyncio
import logging

from core.interfaces.publisher import BaseEventPublisher, Subscription
from core.models.metrics import MetricsUpdated

logger = logging.getLogger(__name__)


class QueueSubscription(Subscription):
    """Subscription backed by a bounded asyncio.Queue"""

    def __init__(self, symbol: str, bus: "InMemoryEventBus", queue_size: int):
        super().__init__(symbol)
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = 0

    def deliver(self, event: MetricsUpdated | None) -> None:
        """Non-blocking put; drops the oldest event when full"""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                f"Subscriber queue full for {self.symbol}, dropped oldest event "
                f"(total dropped: {self.dropped})"
            )
        self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> MetricsUpdated | None:
        if self._closed and self._queue.empty():
            return None
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(self)
        # Wake a consumer blocked in get()
        self.deliver(None)


class InMemoryEventBus(BaseEventPublisher):
    """
    In-process publish/subscribe

    Example:
        >>> bus = InMemoryEventBus(queue_size=100)
        >>> sub = await bus.subscribe("AAPL")
        >>> await bus.publish(event)
        >>> await sub.get(timeout=1)
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: dict[str, set[QueueSubscription]] = {}
        self.published = 0

    async def connect(self) -> None:
        logger.info("✓ Using in-memory event bus")

    async def publish(self, event: MetricsUpdated) -> int:
        subscribers = list(self._subscribers.get(event.symbol, ()))
        for subscription in subscribers:
            subscription.deliver(event)
        self.published += 1
        return len(subscribers)

    async def subscribe(self, symbol: str) -> QueueSubscription:
        subscription = QueueSubscription(symbol, self, self.queue_size)
        self._subscribers.setdefault(subscription.symbol, set()).add(subscription)
        logger.debug(f"New subscriber for {subscription.symbol}")
        return subscription

    def unsubscribe(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscribers.get(subscription.symbol)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.symbol]

    def subscriber_count(self, symbol: str) -> int:
        return len(self._subscribers.get(symbol.upper(), ()))

    async def close(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.close()
        logger.info("✓ In-memory event bus closed")
