"""HTTP and WebSocket routes for chat messages."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime
import logging

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from .errors import http_error_from_domain
from ..broadcast import MessageBroadcaster, Subscription
from ..domain.errors import ChatServiceError
from ..domain.messaging import MessagingService
from ..schemas import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messaging", tags=["messaging"])


class AddMessageRequest(BaseModel):
    """Payload accepted when posting a chat message."""

    body: str
    sender: str
    sent_at: datetime | None = None


def get_messaging_service(request: Request) -> MessagingService:
    service: MessagingService = request.app.state.messaging_service
    return service


@router.post("/addMessage", response_model=MessageResponse)
async def add_message(
    payload: AddMessageRequest,
    service: MessagingService = Depends(get_messaging_service),
) -> MessageResponse:
    """Store a message and notify live subscribers."""
    try:
        message = await service.submit_message(payload.body, payload.sender, payload.sent_at)
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "add message") from exc
    return MessageResponse.from_domain(message)


@router.get("/getMessages", response_model=list[MessageResponse])
async def get_messages(
    service: MessagingService = Depends(get_messaging_service),
) -> list[MessageResponse]:
    """Return the full message log, oldest first."""
    messages = await service.list_messages()
    return [MessageResponse.from_domain(message) for message in messages]


@router.websocket("/ws")
async def message_updates(websocket: WebSocket) -> None:
    """Stream ``messageUpdate`` events for as long as the client stays connected."""
    broadcaster: MessageBroadcaster = websocket.app.state.broadcaster
    # registered before accept so the client never races its first publish
    subscription = broadcaster.subscribe()
    logger.info(
        "subscriber %s connected (%d active)",
        subscription.subscription_id,
        broadcaster.subscriber_count(),
    )
    forwarder: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        forwarder = asyncio.create_task(_forward_updates(websocket, subscription))
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
    finally:
        broadcaster.unsubscribe(subscription)
        if forwarder is not None:
            forwarder.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await forwarder


async def _forward_updates(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.get()
        try:
            await websocket.send_json(event.model_dump(mode="json"))
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.info(
                "subscriber %s went away mid-delivery: %s", subscription.subscription_id, exc
            )
            subscription.close()
            return
        except Exception:
            # any transport failure ends this subscriber only; later events are dropped
            logger.exception("delivery to subscriber %s failed", subscription.subscription_id)
            subscription.close()
            return
