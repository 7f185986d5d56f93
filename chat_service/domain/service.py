"""Account service orchestrating persistence, authentication, and sanitization."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging

from .account import SafeAccount, sanitize
from .authentication import AuthenticationService
from .contracts import AccountUpdate, NewAccount
from .errors import require_text
from ..config import get_settings
from ..repository import AccountRepository
from ..security.passwords import SecretHasher

logger = logging.getLogger(__name__)


class AccountService:
    """Account workflows; every result leaves as a ``SafeAccount``."""

    def __init__(
        self,
        repository: AccountRepository,
        hasher: SecretHasher | None = None,
    ) -> None:
        """Store dependencies used to orchestrate persistence and authentication."""
        self._repository = repository
        self._hasher = hasher or SecretHasher(get_settings().password_hash_iterations)
        self._authenticator = AuthenticationService(repository, self._hasher)

    async def register_account(self, username: str, secret: str) -> SafeAccount:
        """Create an account, raising ``ConflictError`` when the username is taken."""
        require_text(username, "username")
        require_text(secret, "password")
        secret_hash = await asyncio.to_thread(self._hasher.hash, secret)
        account = await self._repository.create(
            NewAccount(
                username=username,
                secret_hash=secret_hash,
                joined_at=datetime.now(timezone.utc),
            )
        )
        logger.info("account registered: %s", account.username)
        return sanitize(account)

    async def authenticate_account(self, username: str, secret: str) -> SafeAccount:
        """Verify credentials and return the matching account view."""
        require_text(username, "username")
        require_text(secret, "password")
        account = await self._authenticator.authenticate(username, secret)
        return sanitize(account)

    async def lookup_account(self, username: str) -> SafeAccount:
        require_text(username, "username")
        return sanitize(await self._repository.find_by_username(username))

    async def remove_account(self, username: str) -> SafeAccount:
        require_text(username, "username")
        account = await self._repository.delete_by_username(username)
        logger.info("account removed: %s", account.username)
        return sanitize(account)

    async def reset_secret(self, username: str, new_secret: str) -> SafeAccount:
        """Replace the stored secret for ``username``.

        No proof of identity is required beyond knowing the username.
        """
        require_text(username, "username")
        require_text(new_secret, "password")
        secret_hash = await asyncio.to_thread(self._hasher.hash, new_secret)
        account = await self._repository.update(username, AccountUpdate(secret_hash=secret_hash))
        logger.info("secret reset for account: %s", account.username)
        return sanitize(account)
