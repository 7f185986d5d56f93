from __future__ import annotations

import asyncio
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_service.api import users
from chat_service.api.errors import install_error_handlers
from chat_service.api.messaging import router as messaging_router
from chat_service.broadcast import MessageBroadcaster
from chat_service.domain.account import Account
from chat_service.domain.contracts import AccountUpdate, NewAccount, NewMessage
from chat_service.domain.errors import (
    ConflictError,
    NotFoundError,
    StoreFailureError,
    ValidationError,
)
from chat_service.domain.message import Message
from chat_service.domain.message_log import MessageLog
from chat_service.domain.messaging import MessagingService
from chat_service.domain.service import AccountService
from chat_service.security.passwords import SecretHasher
from chat_service.security.rate_limiter import SlidingWindowRateLimiter


class FakeAccountRepository:
    """In-memory account store mimicking the Postgres unique index on username."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}

    async def create(self, payload: NewAccount) -> Account:
        # let concurrent callers interleave before the atomic check-and-insert
        await asyncio.sleep(0)
        if payload.username in self.accounts:
            raise ConflictError("username already exists")
        account = Account(
            account_id=str(uuid.uuid4()),
            username=payload.username,
            secret_hash=payload.secret_hash,
            joined_at=payload.joined_at,
        )
        self.accounts[payload.username] = account
        return account

    async def find_by_username(self, username: str) -> Account:
        try:
            return self.accounts[username]
        except KeyError:
            raise NotFoundError("account not found") from None

    async def update(self, username: str, changes: AccountUpdate) -> Account:
        values = changes.changed_fields()
        if not values:
            raise ValidationError("no account fields to update")
        account = await self.find_by_username(username)
        for name, value in values.items():
            setattr(account, name, value)
        return account

    async def delete_by_username(self, username: str) -> Account:
        try:
            return self.accounts.pop(username)
        except KeyError:
            raise NotFoundError("account not found") from None


class FakeMessageRepository:
    """In-memory append-only message store; ``fail_*`` flags simulate outages."""

    def __init__(self) -> None:
        self.messages: list[Message] = []
        self.fail_appends = False
        self.fail_reads = False

    async def append(self, payload: NewMessage) -> Message:
        if self.fail_appends:
            raise StoreFailureError("append_message failed")
        message = Message(
            message_id=str(uuid.uuid4()),
            body=payload.body,
            sender=payload.sender,
            sent_at=payload.sent_at,
        )
        self.messages.append(message)
        return message

    async def list_all(self) -> list[Message]:
        if self.fail_reads:
            raise StoreFailureError("list_messages failed")
        return list(self.messages)


@pytest.fixture
def hasher() -> SecretHasher:
    return SecretHasher(iterations=1_000)


@pytest.fixture
def account_repository() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def message_repository() -> FakeMessageRepository:
    return FakeMessageRepository()


@pytest.fixture
def broadcaster() -> MessageBroadcaster:
    return MessageBroadcaster(max_pending=10)


@pytest.fixture
def account_service(account_repository, hasher) -> AccountService:
    return AccountService(account_repository, hasher)


@pytest.fixture
def messaging_service(message_repository, broadcaster) -> MessagingService:
    return MessagingService(MessageLog(message_repository), broadcaster)


@pytest.fixture
def api_client(account_service, messaging_service, broadcaster):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(users.router)
    app.include_router(messaging_router)
    install_error_handlers(app)
    app.state.account_service = account_service
    app.state.messaging_service = messaging_service
    app.state.broadcaster = broadcaster

    original_limiter = users.rate_limiter
    users.rate_limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=60)

    with TestClient(app) as client:
        yield client

    users.rate_limiter = original_limiter
