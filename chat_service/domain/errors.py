"""Failure kinds raised by the account and messaging workflows."""

from __future__ import annotations


class ChatServiceError(Exception):
    """Base class for domain failures; ``kind`` is a stable machine-readable label."""

    kind = "error"


class ValidationError(ChatServiceError):
    """Input was missing, blank, or otherwise malformed."""

    kind = "validation"


class ConflictError(ChatServiceError):
    """A username is already taken."""

    kind = "conflict"


class NotFoundError(ChatServiceError):
    """The addressed account does not exist."""

    kind = "not_found"


class InvalidCredentialsError(ChatServiceError):
    """The supplied secret does not match the stored one."""

    kind = "invalid_credentials"


class StoreFailureError(ChatServiceError):
    """The persistence layer could not complete the operation."""

    kind = "store_failure"


def require_text(value: str | None, field_name: str) -> str:
    """Return ``value`` unchanged when it contains non-whitespace characters."""
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required and cannot be empty")
    return value


def require_present(value: str | None, field_name: str) -> str:
    """Return ``value`` unchanged unless it is missing or the empty string; whitespace counts as content."""
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required and cannot be empty")
    return value
