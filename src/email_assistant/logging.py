"""Structured logging for Email Assistant.

Uses structlog for contextual JSON logging with request tracking,
bulk action audit events, and FastAPI middleware integration.

Usage:
    from email_assistant.logging import setup_logging, get_logger

    setup_logging("INFO")
    log = get_logger("email_assistant.api")
    log.info("bulk_delete_confirmed", action_id="abc123", count=3)
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Sequence

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from fastapi import Request, Response
    from starlette.middleware.base import RequestResponseEndpoint

# Context variable for request ID
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_var.get()


def set_request_id(request_id: str | None) -> None:
    """Set the request ID in context."""
    _request_id_var.set(request_id)


def _add_request_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add request ID to log event if available."""
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def _add_log_level(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def _add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO 8601 timestamp to event dict."""
    from datetime import datetime, timezone

    event_dict["timestamp"] = datetime.now(tz=timezone.utc).isoformat()
    return event_dict


def setup_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON rendering.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    shared_processors: list[Processor] = [
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_log_level,
        _add_request_id,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Route uvicorn through the same formatter
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a bound logger with optional name.

    Args:
        name: Optional logger name (e.g., 'email_assistant.api')

    Returns:
        Bound structlog logger instance
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


class LoggingMiddleware:
    """FastAPI middleware for request logging and request ID tracking.

    Logs request start and completion with timing information.
    Adds request_id to all logs within the request context.
    """

    def __init__(self, app: Any) -> None:
        self.app = app
        self.logger = get_logger("email_assistant.middleware")

    async def __call__(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        set_request_id(request_id)

        self.logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        start_time = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = (time.monotonic() - start_time) * 1000

            self.logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                error=str(exc),
            )
            raise
        finally:
            set_request_id(None)


# --- Audit Event Functions ---
# Typed interfaces for bulk action lifecycle events


def log_action_scheduled(
    logger: structlog.BoundLogger,
    action_id: str,
    target_ids: Sequence[str],
    grace_seconds: float,
) -> None:
    """Log a bulk action entering its grace window.

    Args:
        logger: Logger instance
        action_id: Unique action identifier
        target_ids: Item IDs the action will remove
        grace_seconds: Length of the undo window
    """
    logger.info(
        "bulk_action_scheduled",
        action_id=action_id,
        count=len(target_ids),
        grace_seconds=grace_seconds,
    )


def log_action_cancelled(
    logger: structlog.BoundLogger,
    action_id: str,
    count: int,
) -> None:
    """Log a bulk action undone before its grace window elapsed."""
    logger.info("bulk_action_cancelled", action_id=action_id, count=count)


def log_action_committed(
    logger: structlog.BoundLogger,
    action_id: str,
    count: int,
) -> None:
    """Log a bulk action committed against the remote service."""
    logger.info("bulk_action_committed", action_id=action_id, count=count)


def log_action_failed(
    logger: structlog.BoundLogger,
    action_id: str,
    count: int,
    reason: str,
) -> None:
    """Log a bulk action whose commit call failed.

    Args:
        logger: Logger instance
        action_id: Unique action identifier
        count: Number of items left pending removal
        reason: Failure reason reported by the executor
    """
    logger.warning(
        "bulk_action_failed",
        action_id=action_id,
        count=count,
        reason=reason,
    )


def log_api_error(
    logger: structlog.BoundLogger,
    endpoint: str,
    error_type: str,
    message: str,
) -> None:
    """Log an API error.

    Args:
        logger: Logger instance
        endpoint: API endpoint that errored
        error_type: Type of error (e.g., "validation", "email_service")
        message: Error message (sanitized - no tokens)
    """
    logger.error(
        "api_error",
        endpoint=endpoint,
        error_type=error_type,
        message=message,
    )
