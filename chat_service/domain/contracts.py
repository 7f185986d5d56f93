"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class NewAccount:
    """Validated inputs required to persist an account."""

    username: str
    secret_hash: str
    joined_at: datetime


@dataclass(slots=True)
class AccountUpdate:
    """Partial account changes; ``None`` leaves a field untouched."""

    secret_hash: str | None = None

    def changed_fields(self) -> dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(slots=True)
class NewMessage:
    """Validated inputs required to append a message to the log."""

    body: str
    sender: str
    sent_at: datetime
