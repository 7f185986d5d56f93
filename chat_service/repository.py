"""Database repositories for accounts and chat messages."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Iterator
import uuid

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import AsyncConnectionPool

from .domain.account import Account
from .domain.contracts import AccountUpdate, NewAccount, NewMessage
from .domain.errors import ConflictError, NotFoundError, StoreFailureError, ValidationError
from .domain.message import Message

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        account_id UUID PRIMARY KEY,
        username TEXT NOT NULL,
        secret_hash TEXT NOT NULL,
        joined_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS accounts_username_key ON accounts (username)",
    """
    CREATE TABLE IF NOT EXISTS messages (
        seq BIGSERIAL PRIMARY KEY,
        message_id UUID NOT NULL UNIQUE,
        body TEXT NOT NULL,
        sender TEXT NOT NULL,
        sent_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS messages_sent_at_seq_idx ON messages (sent_at, seq)",
)

_ACCOUNT_COLUMNS = "account_id, username, secret_hash, joined_at"
_MESSAGE_COLUMNS = "message_id, body, sender, sent_at"


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into ``StoreFailureError`` for the given operation."""
    try:
        yield
    except pg_errors.UniqueViolation as exc:
        raise ConflictError("username already exists") from exc
    except psycopg.Error as exc:
        logger.error("store operation %s failed: %s", operation, exc)
        raise StoreFailureError(f"{operation} failed") from exc


async def ensure_schema(pool: AsyncConnectionPool) -> None:
    """Create the tables and indexes used by the repositories when missing."""
    with _store_errors("ensure_schema"):
        async with pool.connection() as conn:
            async with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    await cur.execute(statement)
            await conn.commit()


class AccountRepository:
    """Postgres-backed account store; usernames are unique at the index level."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    async def create(self, payload: NewAccount) -> Account:
        """Insert an account, raising ``ConflictError`` when the username is taken.

        The insert and the uniqueness check are a single statement, so two
        concurrent signups for one username cannot both succeed.
        """
        account_id = str(uuid.uuid4())
        with _store_errors("create_account"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO accounts ({_ACCOUNT_COLUMNS})
                        VALUES (%s, %s, %s, %s)
                        ON CONFLICT (username) DO NOTHING
                        RETURNING {_ACCOUNT_COLUMNS}
                        """,
                        (account_id, payload.username, payload.secret_hash, payload.joined_at),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        if row is None:
            raise ConflictError("username already exists")
        return self._map_account(row)

    async def find_by_username(self, username: str) -> Account:
        """Fetch the account registered under ``username``."""
        with _store_errors("find_account"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE username = %s",
                        (username,),
                    )
                    row = await cur.fetchone()
        if row is None:
            raise NotFoundError("account not found")
        return self._map_account(row)

    async def update(self, username: str, changes: AccountUpdate) -> Account:
        """Apply the populated fields of ``changes`` and return the updated account."""
        values = changes.changed_fields()
        if not values:
            raise ValidationError("no account fields to update")

        assignments = ", ".join(f"{column} = %s" for column in values)
        params: list[Any] = [*values.values(), username]
        with _store_errors("update_account"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"""
                        UPDATE accounts
                        SET {assignments}
                        WHERE username = %s
                        RETURNING {_ACCOUNT_COLUMNS}
                        """,
                        params,
                    )
                    row = await cur.fetchone()
                await conn.commit()
        if row is None:
            raise NotFoundError("account not found")
        return self._map_account(row)

    async def delete_by_username(self, username: str) -> Account:
        """Remove the account and return the deleted record."""
        with _store_errors("delete_account"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"DELETE FROM accounts WHERE username = %s RETURNING {_ACCOUNT_COLUMNS}",
                        (username,),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        if row is None:
            raise NotFoundError("account not found")
        return self._map_account(row)

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            username=row[1],
            secret_hash=row[2],
            joined_at=row[3],
        )


class MessageRepository:
    """Append-only Postgres message store ordered by ``(sent_at, seq)``."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def append(self, payload: NewMessage) -> Message:
        message_id = str(uuid.uuid4())
        with _store_errors("append_message"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO messages ({_MESSAGE_COLUMNS})
                        VALUES (%s, %s, %s, %s)
                        RETURNING {_MESSAGE_COLUMNS}
                        """,
                        (message_id, payload.body, payload.sender, payload.sent_at),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        if row is None:
            raise StoreFailureError("append_message returned no row")
        return self._map_message(row)

    async def list_all(self) -> list[Message]:
        """Return every stored message, oldest first, ties in insertion order."""
        with _store_errors("list_messages"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"SELECT {_MESSAGE_COLUMNS} FROM messages ORDER BY sent_at ASC, seq ASC"
                    )
                    rows = await cur.fetchall()
        return [self._map_message(row) for row in rows]

    def _map_message(self, row: tuple) -> Message:
        return Message(
            message_id=str(row[0]),
            body=row[1],
            sender=row[2],
            sent_at=row[3],
        )
