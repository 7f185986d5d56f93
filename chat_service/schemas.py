"""Pydantic wire models shared by the HTTP routes and the live update stream."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .domain.account import SafeAccount
from .domain.message import Message

MESSAGE_UPDATE_EVENT = "messageUpdate"


class SafeAccountResponse(BaseModel):
    """Serialised representation of a ``SafeAccount``."""

    model_config = ConfigDict(extra="forbid")

    account_id: str
    username: str
    joined_at: datetime

    @classmethod
    def from_domain(cls, account: SafeAccount) -> "SafeAccountResponse":
        return cls(
            account_id=account.account_id,
            username=account.username,
            joined_at=account.joined_at,
        )


class MessageResponse(BaseModel):
    """Serialised representation of a stored ``Message``."""

    message_id: str
    body: str
    sender: str
    sent_at: datetime

    @classmethod
    def from_domain(cls, message: Message) -> "MessageResponse":
        return cls(
            message_id=message.message_id,
            body=message.body,
            sender=message.sender,
            sent_at=message.sent_at,
        )


class MessageUpdate(BaseModel):
    """Real-time notification emitted after a message is appended."""

    event: Literal["messageUpdate"] = MESSAGE_UPDATE_EVENT
    message: MessageResponse

    @classmethod
    def for_message(cls, message: Message) -> "MessageUpdate":
        return cls(message=MessageResponse.from_domain(message))
