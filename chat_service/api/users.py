"""HTTP route definitions for account management."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from .errors import http_error_from_domain
from ..config import get_settings
from ..domain.errors import ChatServiceError, InvalidCredentialsError, NotFoundError
from ..domain.service import AccountService
from ..schemas import SafeAccountResponse
from ..security.rate_limiter import SlidingWindowRateLimiter
from ..security.redis_rate_limiter import RedisSlidingWindowRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


class CredentialsRequest(BaseModel):
    """Username/password pair used by signup, login, and password reset."""

    username: str
    password: str


settings = get_settings()


def _build_rate_limiter() -> SlidingWindowRateLimiter | RedisSlidingWindowRateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        import redis

        client = redis.from_url(settings.redis_url)
        try:
            client.ping()
        except redis.RedisError as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("rate limiter configured for redis backend at %s", settings.redis_url)
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


rate_limiter = _build_rate_limiter()


def get_service(request: Request) -> AccountService:
    """Resolve the ``AccountService`` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def _throttle(key: str) -> None:
    retry_after = rate_limiter.acquire(key)
    if retry_after:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="rate limited",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/signup", response_model=SafeAccountResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: CredentialsRequest,
    service: AccountService = Depends(get_service),
) -> SafeAccountResponse:
    """Register a new account under a unique username."""
    _throttle(f"signup:{payload.username}")
    try:
        account = await service.register_account(payload.username, payload.password)
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "create user") from exc
    return SafeAccountResponse.from_domain(account)


@router.post("/login", response_model=SafeAccountResponse)
async def login(
    payload: CredentialsRequest,
    service: AccountService = Depends(get_service),
) -> SafeAccountResponse:
    """Check credentials; unknown users and wrong passwords look identical."""
    _throttle(f"login:{payload.username}")
    try:
        account = await service.authenticate_account(payload.username, payload.password)
    except (NotFoundError, InvalidCredentialsError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Failed to login user: Invalid credentials",
        ) from exc
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "login user") from exc
    return SafeAccountResponse.from_domain(account)


@router.patch("/resetPassword", response_model=SafeAccountResponse)
async def reset_password(
    payload: CredentialsRequest,
    service: AccountService = Depends(get_service),
) -> SafeAccountResponse:
    try:
        account = await service.reset_secret(payload.username, payload.password)
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "update user password") from exc
    return SafeAccountResponse.from_domain(account)


@router.get("/getUser/{username}", response_model=SafeAccountResponse)
async def get_user(
    username: str,
    service: AccountService = Depends(get_service),
) -> SafeAccountResponse:
    try:
        account = await service.lookup_account(username)
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "get user") from exc
    return SafeAccountResponse.from_domain(account)


@router.delete("/deleteUser/{username}", response_model=SafeAccountResponse)
async def delete_user(
    username: str,
    service: AccountService = Depends(get_service),
) -> SafeAccountResponse:
    try:
        account = await service.remove_account(username)
    except ChatServiceError as exc:
        raise http_error_from_domain(exc, "delete user") from exc
    return SafeAccountResponse.from_domain(account)
