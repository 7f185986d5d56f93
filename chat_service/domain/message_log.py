"""Append-only chat message log with a stable total order."""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from .contracts import NewMessage
from .errors import StoreFailureError, require_present
from .message import Message
from ..repository import MessageRepository

logger = logging.getLogger(__name__)


class MessageLog:
    """Validates, timestamps, and orders messages kept by the message store."""

    def __init__(self, repository: MessageRepository) -> None:
        self._repository = repository

    async def append(self, body: str, sender: str, sent_at: datetime | None = None) -> Message:
        """Persist a message and return it with its assigned id and timestamp.

        ``sent_at`` defaults to the current UTC time; naive values are taken
        as UTC. Store errors surface as ``StoreFailureError``.
        """
        require_present(body, "body")
        require_present(sender, "sender")
        if sent_at is None:
            sent_at = datetime.now(timezone.utc)
        elif sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=timezone.utc)
        return await self._repository.append(NewMessage(body=body, sender=sender, sent_at=sent_at))

    async def read_all(self) -> list[Message]:
        """Return every message ordered by ``sent_at``; an empty list if the store fails."""
        try:
            messages = await self._repository.list_all()
        except StoreFailureError as exc:
            logger.warning("message log unavailable, returning empty list: %s", exc)
            return []
        # sorted() is stable: equal timestamps keep the store's insertion order
        return sorted(messages, key=lambda message: message.sent_at)
