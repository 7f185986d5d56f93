"""Translation of domain failures into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import (
    ChatServiceError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    StoreFailureError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ChatServiceError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    StoreFailureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_error_from_domain(exc: ChatServiceError, action: str) -> HTTPException:
    """Build the ``HTTPException`` for ``exc`` with a stable, user-visible detail."""
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s failed (%s): %s", action, exc.kind, exc)
        return HTTPException(status_code=status_code, detail=f"Failed to {action}")
    return HTTPException(status_code=status_code, detail=f"Failed to {action}: {exc}")


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request"},
    )


def install_error_handlers(app: FastAPI) -> None:
    """Render malformed request bodies as 400 instead of FastAPI's default 422."""
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
