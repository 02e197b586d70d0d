"""API endpoints for Email Assistant."""

from email_assistant.api.health import router as health_router
from email_assistant.api.inbox import router as inbox_router

__all__ = ["health_router", "inbox_router"]
