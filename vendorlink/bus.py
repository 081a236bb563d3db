"""
EventBus - per-workspace broadcast of turn events.

Each subscriber owns a bounded queue. Publishing never waits: when a
subscriber falls behind, its oldest buffered event is dropped and its
``lagged`` counter goes up. The producer is never blocked or failed by a slow
consumer.
"""

import asyncio
import logging
from typing import Optional

from vendorlink.config import get_event_bus_capacity
from vendorlink.events import TurnEvent

logger = logging.getLogger(__name__)


class Subscription:
    """
    One subscriber's view of the bus.

    Iterate it to receive events, or call ``get()``. Use as an async context
    manager (or call ``close()``) to unsubscribe.
    """

    def __init__(self, bus: "EventBus", capacity: int):
        self._bus = bus
        self.queue: asyncio.Queue[TurnEvent] = asyncio.Queue(maxsize=capacity)
        self.lagged = 0

    def _offer(self, item: TurnEvent) -> None:
        while True:
            try:
                self.queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                self.queue.get_nowait()
                self.lagged += 1

    async def get(self) -> TurnEvent:
        return await self.queue.get()

    def get_nowait(self) -> TurnEvent:
        return self.queue.get_nowait()

    def drain(self) -> list[TurnEvent]:
        """Return every buffered event without waiting."""
        items = []
        while not self.queue.empty():
            items.append(self.queue.get_nowait())
        return items

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> TurnEvent:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventBus:
    """In-memory bounded fan-out of TurnEvents."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity if capacity and capacity > 0 else get_event_bus_capacity()
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.capacity)
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, item: TurnEvent) -> int:
        """
        Deliver an event to every current subscriber.

        Returns:
            Number of subscribers the event was offered to (0 is not an error).
        """
        subscribers = list(self._subscribers)
        for subscription in subscribers:
            before = subscription.lagged
            subscription._offer(item)
            if subscription.lagged != before:
                logger.debug(f"Subscriber lagged, dropped {subscription.lagged - before} event(s)")
        return len(subscribers)
