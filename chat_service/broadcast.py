"""In-process fan-out of new messages to live subscribers."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
import uuid

from prometheus_client import Counter, Gauge

from .domain.message import Message
from .schemas import MessageUpdate

logger = logging.getLogger(__name__)

MESSAGE_UPDATES_PUBLISHED = Counter(
    "chat_message_updates_published_total",
    "Message update events handed to subscriber queues.",
)
MESSAGE_UPDATES_DROPPED = Counter(
    "chat_message_updates_dropped_total",
    "Message update events a subscriber missed because its queue was full or closed.",
)
ACTIVE_SUBSCRIBERS = Gauge(
    "chat_active_subscribers",
    "Subscribers currently registered for message updates.",
)


class Subscription:
    """A subscriber's bounded FIFO channel of ``MessageUpdate`` events."""

    def __init__(self, max_pending: int) -> None:
        self.subscription_id = str(uuid.uuid4())
        self._queue: asyncio.Queue[MessageUpdate] = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, event: MessageUpdate) -> bool:
        """Enqueue ``event`` without waiting; ``False`` when it cannot be accepted."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> MessageUpdate:
        """Wait for the next event in publish order."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed = True


class MessageBroadcaster:
    """Registry of live subscriptions with best-effort, non-blocking delivery.

    Each subscriber registered when :meth:`publish` is called receives the
    event at most once; subscribers registered afterwards never see it. There
    is no redelivery.
    """

    def __init__(self, max_pending: int = 100) -> None:
        self._max_pending = max_pending
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = Lock()

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._max_pending)
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
            ACTIVE_SUBSCRIBERS.set(len(self._subscriptions))
        logger.debug("subscriber %s registered", subscription.subscription_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Deregister ``subscription``; unknown or already removed ones are ignored."""
        subscription.close()
        with self._lock:
            removed = self._subscriptions.pop(subscription.subscription_id, None)
            ACTIVE_SUBSCRIBERS.set(len(self._subscriptions))
        if removed is not None:
            logger.debug(
                "subscriber %s removed with %d undelivered events",
                subscription.subscription_id,
                subscription.pending(),
            )

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, message: Message) -> int:
        """Hand ``message`` to every current subscriber and return the delivery count."""
        event = MessageUpdate.for_message(message)
        with self._lock:
            targets = list(self._subscriptions.values())

        delivered = 0
        for subscription in targets:
            if subscription.offer(event):
                delivered += 1
            else:
                MESSAGE_UPDATES_DROPPED.inc()
                logger.warning(
                    "subscriber %s missed message %s",
                    subscription.subscription_id,
                    message.message_id,
                )
        MESSAGE_UPDATES_PUBLISHED.inc(delivered)
        return delivered
