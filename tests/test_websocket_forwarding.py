"""Delivery loop behind the ``/messaging/ws`` stream."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from starlette.websockets import WebSocketDisconnect

from chat_service.api.messaging import _forward_updates
from chat_service.broadcast import MessageBroadcaster
from chat_service.domain.message import Message


class ClientGone(Exception):
    """Transport-specific failure raised by a server when the peer vanished."""


class RecordingSocket:
    def __init__(self, fail_with: Exception | None = None) -> None:
        self.sent: list[dict] = []
        self._fail_with = fail_with

    async def send_json(self, data):
        if self._fail_with is not None:
            raise self._fail_with
        self.sent.append(data)


def _message(body: str) -> Message:
    return Message(
        message_id=f"id-{body}",
        body=body,
        sender="alice",
        sent_at=datetime(2024, 6, 4, tzinfo=timezone.utc),
    )


def test_forwarder_sends_events_in_publish_order():
    broadcaster = MessageBroadcaster()
    subscription = broadcaster.subscribe()
    socket = RecordingSocket()
    for body in ("a", "b"):
        broadcaster.publish(_message(body))

    async def scenario():
        task = asyncio.create_task(_forward_updates(socket, subscription))
        while len(socket.sent) < 2:
            await asyncio.sleep(0)
        task.cancel()

    asyncio.run(scenario())
    assert [event["message"]["body"] for event in socket.sent] == ["a", "b"]
    assert socket.sent[0]["event"] == "messageUpdate"


def test_forwarder_stops_quietly_on_unexpected_send_failure():
    broadcaster = MessageBroadcaster()
    subscription = broadcaster.subscribe()
    broadcaster.publish(_message("a"))

    asyncio.run(_forward_updates(RecordingSocket(fail_with=ClientGone("reset")), subscription))

    assert subscription.closed
    assert broadcaster.publish(_message("b")) == 0


def test_forwarder_stops_on_disconnect():
    broadcaster = MessageBroadcaster()
    subscription = broadcaster.subscribe()
    broadcaster.publish(_message("a"))

    asyncio.run(_forward_updates(RecordingSocket(fail_with=WebSocketDisconnect(1001)), subscription))

    assert subscription.closed
