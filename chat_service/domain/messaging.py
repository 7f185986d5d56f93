"""Messaging service tying the message log to the live broadcaster."""

from __future__ import annotations

from datetime import datetime
import logging

from .errors import require_present
from .message import Message
from .message_log import MessageLog
from ..broadcast import MessageBroadcaster

logger = logging.getLogger(__name__)


class MessagingService:
    """Submit and list chat messages."""

    def __init__(self, message_log: MessageLog, broadcaster: MessageBroadcaster) -> None:
        self._log = message_log
        self._broadcaster = broadcaster

    async def submit_message(
        self, body: str, sender: str, sent_at: datetime | None = None
    ) -> Message:
        """Append a message, then publish the stored copy to live subscribers.

        Nothing is published when the append fails; the failure propagates.
        """
        require_present(body, "body")
        require_present(sender, "sender")
        message = await self._log.append(body, sender, sent_at)
        delivered = self._broadcaster.publish(message)
        logger.debug("message %s delivered to %d subscribers", message.message_id, delivered)
        return message

    async def list_messages(self) -> list[Message]:
        return await self._log.read_all()
