"""In-process broadcast of deployment events to any number of subscribers.

Each subscriber owns a bounded buffer. Publishing never blocks: when a
subscriber's buffer is full, its oldest unread event is discarded and counted
in `Subscription.dropped`. Order is preserved for whatever is delivered.

Every new subscription first yields a `SubscriberConnected` event that is
synthesized locally rather than published, so viewers can request a full
refresh without waiting for real activity.

The bus is bound to the event loop thread: publish and receive must both be
called from it.
"""

import asyncio
from collections import deque

import structlog

from redeployer.models import BusEvent, SubscriberConnected

logger = structlog.get_logger()

DEFAULT_CAPACITY = 100


class SubscriptionClosed(Exception):
    """Raised by `Subscription.receive` once the subscription is closed."""


class Subscription:
    """One subscriber's view of the bus. Async iterable; close to unsubscribe."""

    def __init__(self, bus: "EventBus", capacity: int):
        self._bus = bus
        self._buffer: deque[BusEvent] = deque(maxlen=capacity)
        self._snapshot_pending = True
        self._wakeup = asyncio.Event()
        self.dropped = 0
        self.closed = False

    @property
    def pending(self) -> int:
        """Events buffered and not yet received (the snapshot excluded)."""
        return len(self._buffer)

    def _deliver(self, event: BusEvent) -> None:
        if len(self._buffer) == self._buffer.maxlen:
            self.dropped += 1
            logger.debug("subscriber_lagging", dropped=self.dropped)
        self._buffer.append(event)
        self._wakeup.set()

    async def receive(self) -> BusEvent:
        """Wait for the next event."""
        if self.closed:
            raise SubscriptionClosed()

        if self._snapshot_pending:
            self._snapshot_pending = False
            return SubscriberConnected()

        while not self._buffer:
            self._wakeup.clear()
            await self._wakeup.wait()
            if self.closed:
                raise SubscriptionClosed()

        return self._buffer.popleft()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._bus._unsubscribe(self)
        self._wakeup.set()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BusEvent:
        try:
            return await self.receive()
        except SubscriptionClosed:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    """Bounded, lossy, multi-producer/multi-consumer broadcast."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._subscribers: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.capacity)
        self._subscribers.append(subscription)
        logger.info("bus_subscribed", subscribers=len(self._subscribers))
        return subscription

    def publish(self, event: BusEvent) -> int:
        """Deliver `event` to every current subscriber.

        Returns:
            Number of subscribers it was delivered to; 0 means it was dropped.
        """
        for subscription in self._subscribers:
            subscription._deliver(event)

        logger.debug(
            "event_published",
            event_type=event.type,
            subscribers=len(self._subscribers),
        )
        return len(self._subscribers)

    def _unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            return
        logger.info("bus_unsubscribed", subscribers=len(self._subscribers))
