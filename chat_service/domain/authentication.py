"""Credential verification against the account store."""

from __future__ import annotations

import asyncio
import logging

from .account import Account
from .errors import InvalidCredentialsError, NotFoundError
from ..repository import AccountRepository
from ..security.passwords import SecretHasher

logger = logging.getLogger(__name__)


class AuthenticationService:
    """Read-only check of a username/secret pair."""

    def __init__(self, repository: AccountRepository, hasher: SecretHasher) -> None:
        self._repository = repository
        self._hasher = hasher

    async def authenticate(self, username: str, candidate_secret: str) -> Account:
        """Return the stored account when ``candidate_secret`` matches its secret.

        Raises ``NotFoundError`` for unknown usernames and
        ``InvalidCredentialsError`` for a mismatched secret. Callers facing the
        network must render both the same way.
        """
        try:
            account = await self._repository.find_by_username(username)
        except NotFoundError as exc:
            logger.info("authentication failed for %s: %s", username, exc.kind)
            raise

        matches = await asyncio.to_thread(self._hasher.verify, candidate_secret, account.secret_hash)
        if not matches:
            error = InvalidCredentialsError("invalid credentials")
            logger.info("authentication failed for %s: %s", username, error.kind)
            raise error
        return account
