"""Health check API endpoints."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from email_assistant import __version__

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response with component status."""

    status: str = "healthy"
    version: str
    inbox: str = "unknown"
    pending_actions: int = 0
    failed_actions: int = 0


@router.get("/", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report server health and bulk action queue status.

    Always returns 200 with component status in body.
    """
    inbox = getattr(request.app.state, "inbox", None)
    if inbox is None:
        return HealthResponse(status="degraded", version=__version__, inbox="unavailable")

    failed = len(inbox.queue.list_failed())
    return HealthResponse(
        status="degraded" if failed else "healthy",
        version=__version__,
        inbox="healthy",
        pending_actions=len(inbox.queue.list_pending()),
        failed_actions=failed,
    )
