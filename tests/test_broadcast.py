from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from threading import Thread

from chat_service.broadcast import MessageBroadcaster
from chat_service.domain.message import Message


def _message(body: str) -> Message:
    return Message(
        message_id=f"id-{body}",
        body=body,
        sender="alice",
        sent_at=datetime(2024, 6, 4, tzinfo=timezone.utc),
    )


def _drain(subscription) -> list[str]:
    async def collect():
        bodies = []
        while subscription.pending():
            event = await subscription.get()
            bodies.append(event.message.body)
        return bodies

    return asyncio.run(collect())


def test_publish_reaches_only_current_subscribers():
    broadcaster = MessageBroadcaster()
    early = broadcaster.subscribe()

    assert broadcaster.publish(_message("X")) == 1
    late = broadcaster.subscribe()

    assert _drain(early) == ["X"]
    assert _drain(late) == []


def test_each_subscriber_sees_publish_order():
    broadcaster = MessageBroadcaster()
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()

    for body in ("a", "b", "c"):
        broadcaster.publish(_message(body))

    assert _drain(first) == ["a", "b", "c"]
    assert _drain(second) == ["a", "b", "c"]


def test_unsubscribed_channel_receives_nothing():
    broadcaster = MessageBroadcaster()
    subscription = broadcaster.subscribe()
    broadcaster.unsubscribe(subscription)
    broadcaster.unsubscribe(subscription)

    assert broadcaster.publish(_message("X")) == 0
    assert subscription.closed
    assert subscription.pending() == 0
    assert broadcaster.subscriber_count() == 0


def test_full_queue_drops_without_blocking_other_subscribers():
    broadcaster = MessageBroadcaster(max_pending=1)
    slow = broadcaster.subscribe()
    fast = broadcaster.subscribe()

    broadcaster.publish(_message("a"))
    assert _drain(fast) == ["a"]
    delivered = broadcaster.publish(_message("b"))

    assert delivered == 1
    assert _drain(slow) == ["a"]
    assert _drain(fast) == ["b"]


def test_concurrent_registration_keeps_every_entry():
    broadcaster = MessageBroadcaster()
    subscriptions = []

    def register():
        for _ in range(200):
            subscriptions.append(broadcaster.subscribe())

    threads = [Thread(target=register) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert broadcaster.subscriber_count() == 800

    def deregister(chunk):
        for subscription in chunk:
            broadcaster.unsubscribe(subscription)

    chunks = [subscriptions[index::4] for index in range(4)]
    threads = [Thread(target=deregister, args=(chunk,)) for chunk in chunks]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert broadcaster.subscriber_count() == 0


def test_unsubscribe_reports_undelivered_events(caplog):
    caplog.set_level(logging.DEBUG, logger="chat_service.broadcast")
    broadcaster = MessageBroadcaster()
    subscription = broadcaster.subscribe()
    broadcaster.publish(_message("a"))
    broadcaster.publish(_message("b"))

    broadcaster.unsubscribe(subscription)

    assert (
        f"subscriber {subscription.subscription_id} removed with 2 undelivered events"
        in caplog.messages
    )
