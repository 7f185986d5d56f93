"""FastAPI application wiring for the chat service."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import AsyncConnectionPool

from .api.errors import install_error_handlers
from .api.messaging import router as messaging_router
from .api.users import router as users_router
from .broadcast import MessageBroadcaster
from .config import get_settings
from .domain.message_log import MessageLog
from .domain.messaging import MessagingService
from .domain.service import AccountService
from .logging_config import setup_logging
from .repository import AccountRepository, MessageRepository, ensure_schema

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services, broadcaster) for the app lifecycle."""
    pool = AsyncConnectionPool(settings.database_url, open=False)
    await pool.open()
    await ensure_schema(pool)
    app.state.pool = pool
    app.state.broadcaster = MessageBroadcaster(max_pending=settings.subscriber_queue_size)
    app.state.account_service = AccountService(AccountRepository(pool))
    app.state.messaging_service = MessagingService(
        MessageLog(MessageRepository(pool)),
        app.state.broadcaster,
    )
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)
install_error_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(users_router)
app.include_router(messaging_router)


def run() -> None:
    """Serve the application with Uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_level=settings.log_level.lower())
