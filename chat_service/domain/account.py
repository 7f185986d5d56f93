from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Registered user identity, including the hashed secret."""

    account_id: str
    username: str
    secret_hash: str
    joined_at: datetime


@dataclass(slots=True, frozen=True)
class SafeAccount:
    """Outward-facing account view; carries no secret material."""

    account_id: str
    username: str
    joined_at: datetime


def sanitize(account: Account) -> SafeAccount:
    """Project an ``Account`` onto its ``SafeAccount`` view."""
    return SafeAccount(
        account_id=account.account_id,
        username=account.username,
        joined_at=account.joined_at,
    )
