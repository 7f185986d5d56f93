from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class Message:
    """A chat message as persisted in the message log."""

    message_id: str
    body: str
    sender: str
    sent_at: datetime
