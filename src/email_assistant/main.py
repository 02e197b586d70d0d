"""FastAPI application entry point for Email Assistant.

Configures the FastAPI app with routers, middleware, and lifecycle management.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from email_assistant import __version__
from email_assistant.api import health_router, inbox_router
from email_assistant.bulk import AsyncioScheduler
from email_assistant.client import EmailServiceClient, EmailServiceError
from email_assistant.config import get_settings
from email_assistant.inbox import InboxSession
from email_assistant.logging import LoggingMiddleware, setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    Creates the inbox session on startup. On shutdown, scheduled bulk
    actions are dropped (they are not persisted) and in-flight commits are
    awaited.
    """
    settings = get_settings()

    logger.info(
        "server_starting",
        version=__version__,
        api_url=settings.api_url,
        grace_period_seconds=settings.grace_period_seconds,
        check_interval_hours=settings.check_interval_hours,
        log_level=settings.log_level,
    )

    client = EmailServiceClient(
        settings.api_url,
        token=settings.api_token,
        timeout=settings.request_timeout,
    )
    inbox = InboxSession(client, settings, scheduler=AsyncioScheduler())
    app.state.inbox = inbox

    if settings.api_token:
        try:
            await inbox.refresh()
        except EmailServiceError as e:
            logger.warning("initial_refresh_failed", error=e.reason)

    yield

    await inbox.aclose()
    app.state.inbox = None
    logger.info("server_stopping")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Email Assistant",
        description="Inbox summaries with deferred, undoable bulk delete",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(LoggingMiddleware(app))

    app.include_router(health_router)
    app.include_router(inbox_router)

    return app


def run(host: str | None = None, port: int | None = None) -> None:
    """Run the server using uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        create_app(),
        host=host or settings.host,
        port=port or settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
