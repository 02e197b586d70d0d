"""Inbox API.

Endpoints:
- GET  /api/inbox/emails
- POST /api/inbox/refresh
- POST /api/inbox/selection/{email_id}/toggle
- DELETE /api/inbox/selection
- POST /api/inbox/bulk-delete
- GET  /api/inbox/pending
- GET  /api/inbox/failed
- POST /api/inbox/actions/{action_id}/undo
- POST /api/inbox/actions/{action_id}/retry
- POST /api/inbox/actions/{action_id}/dismiss
- GET  /api/inbox/summary
- PUT  /api/inbox/settings/interval
- POST /api/inbox/accounts/{account_id}/remove

Bulk deletes are deferred: the response to /bulk-delete carries an action ID
that can be undone until its grace window elapses.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from email_assistant.bulk import ActionNotFound, InvalidTarget, PendingAction
from email_assistant.client import EmailServiceError
from email_assistant.inbox import InboxSession
from email_assistant.logging import log_api_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/inbox", tags=["inbox"])


# --- Schemas ---


class EmailItem(BaseModel):
    id: str
    sender: Optional[str] = None
    account: Optional[str] = None
    subject: Optional[str] = None
    summary: Optional[str] = None
    time: Optional[str] = None
    web_url: str
    status: str
    selected: bool
    failed: bool
    failure_reason: Optional[str] = None


class EmailListResponse(BaseModel):
    emails: list[EmailItem]
    count: int
    selected_count: int


class SelectionResponse(BaseModel):
    email_id: Optional[str] = None
    selected: bool
    selected_ids: list[str]


class ActionResponse(BaseModel):
    """A deferred bulk action."""
    action_id: str
    target_ids: list[str]
    count: int
    status: str
    created_at: str
    grace_seconds: float
    remaining_seconds: float
    failure_reason: Optional[str] = None
    retry_of: Optional[str] = None


class NotificationResponse(BaseModel):
    action_id: str
    count: int
    remaining_seconds: float
    message: str


class PendingListResponse(BaseModel):
    pending: list[NotificationResponse]
    total: int


class FailedListResponse(BaseModel):
    failed: list[ActionResponse]
    total: int


class UndoResponse(BaseModel):
    action_id: str
    outcome: str
    status: str


class DismissResponse(BaseModel):
    action_id: str
    dismissed: bool


class SummaryResponse(BaseModel):
    email_count: int
    account_count: int
    selected_count: int
    pending_count: int
    check_interval_hours: int


class IntervalRequest(BaseModel):
    hours: int


# --- Dependencies ---


def get_inbox(request: Request) -> InboxSession:
    """Return the inbox session created at application startup."""
    inbox = getattr(request.app.state, "inbox", None)
    if inbox is None:
        raise HTTPException(status_code=503, detail="Inbox session not initialized")
    return inbox


def _action_payload(inbox: InboxSession, action: PendingAction) -> ActionResponse:
    now = inbox.queue.scheduler.now()
    return ActionResponse(**action.to_dict(now=now))


def _service_error(endpoint: str, e: EmailServiceError) -> HTTPException:
    log_api_error(logger, endpoint, "email_service", e.reason)
    return HTTPException(status_code=502, detail=f"Email service error: {e.reason}")


# --- Endpoints ---


@router.get("/emails", response_model=EmailListResponse)
async def list_emails(inbox: InboxSession = Depends(get_inbox)) -> EmailListResponse:
    items = [
        EmailItem(
            id=view.email.id,
            sender=view.email.sender,
            account=view.email.account,
            subject=view.email.subject,
            summary=view.email.summary,
            time=view.email.time,
            web_url=view.email.web_url,
            status=view.status.value,
            selected=view.selected,
            failed=view.failure_reason is not None,
            failure_reason=view.failure_reason,
        )
        for view in inbox.visible_emails()
    ]
    return EmailListResponse(
        emails=items, count=len(items), selected_count=len(inbox.selection)
    )


@router.post("/refresh", response_model=SummaryResponse)
async def refresh(inbox: InboxSession = Depends(get_inbox)) -> SummaryResponse:
    try:
        await inbox.refresh()
    except EmailServiceError as e:
        raise _service_error("/api/inbox/refresh", e) from e
    return SummaryResponse(**inbox.summary())


@router.post("/selection/{email_id}/toggle", response_model=SelectionResponse)
async def toggle_selection(
    email_id: str,
    inbox: InboxSession = Depends(get_inbox),
) -> SelectionResponse:
    selected = inbox.toggle(email_id)
    return SelectionResponse(
        email_id=email_id,
        selected=selected,
        selected_ids=inbox.selection.snapshot(),
    )


@router.delete("/selection", response_model=SelectionResponse)
async def clear_selection(inbox: InboxSession = Depends(get_inbox)) -> SelectionResponse:
    inbox.clear_selection()
    return SelectionResponse(selected=False, selected_ids=[])


@router.post("/bulk-delete", response_model=ActionResponse, status_code=202)
async def bulk_delete(inbox: InboxSession = Depends(get_inbox)) -> ActionResponse:
    """Schedule deletion of the selected emails after the grace window."""
    try:
        action = inbox.confirm_bulk_delete()
    except InvalidTarget as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "conflicting_ids": e.conflicting_ids},
        ) from e
    logger.info("bulk_delete_confirmed", action_id=action.action_id, count=action.count)
    return _action_payload(inbox, action)


@router.get("/pending", response_model=PendingListResponse)
async def list_pending(inbox: InboxSession = Depends(get_inbox)) -> PendingListResponse:
    notifications = [
        NotificationResponse(**n.__dict__) for n in inbox.notifications()
    ]
    return PendingListResponse(pending=notifications, total=len(notifications))


@router.get("/failed", response_model=FailedListResponse)
async def list_failed(inbox: InboxSession = Depends(get_inbox)) -> FailedListResponse:
    failed = [_action_payload(inbox, a) for a in inbox.queue.list_failed()]
    return FailedListResponse(failed=failed, total=len(failed))


@router.post("/actions/{action_id}/undo", response_model=UndoResponse)
async def undo_action(
    action_id: str,
    inbox: InboxSession = Depends(get_inbox),
) -> UndoResponse:
    try:
        outcome = inbox.undo(action_id)
    except ActionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    action = inbox.queue.get(action_id)
    return UndoResponse(
        action_id=action_id, outcome=outcome.value, status=action.status.value
    )


@router.post("/actions/{action_id}/retry", response_model=ActionResponse, status_code=202)
async def retry_action(
    action_id: str,
    inbox: InboxSession = Depends(get_inbox),
) -> ActionResponse:
    try:
        action = inbox.retry(action_id)
    except ActionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidTarget as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "conflicting_ids": e.conflicting_ids},
        ) from e
    return _action_payload(inbox, action)


@router.post("/actions/{action_id}/dismiss", response_model=DismissResponse)
async def dismiss_action(
    action_id: str,
    inbox: InboxSession = Depends(get_inbox),
) -> DismissResponse:
    try:
        dismissed = inbox.dismiss(action_id)
    except ActionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return DismissResponse(action_id=action_id, dismissed=dismissed)


@router.get("/summary", response_model=SummaryResponse)
async def summary(inbox: InboxSession = Depends(get_inbox)) -> SummaryResponse:
    return SummaryResponse(**inbox.summary())


@router.put("/settings/interval", response_model=SummaryResponse)
async def update_interval(
    body: IntervalRequest,
    inbox: InboxSession = Depends(get_inbox),
) -> SummaryResponse:
    try:
        await inbox.set_check_interval(body.hours)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except EmailServiceError as e:
        raise _service_error("/api/inbox/settings/interval", e) from e
    return SummaryResponse(**inbox.summary())


@router.post("/accounts/{account_id}/remove", response_model=SummaryResponse)
async def remove_account(
    account_id: str,
    inbox: InboxSession = Depends(get_inbox),
) -> SummaryResponse:
    try:
        await inbox.remove_account(account_id)
    except EmailServiceError as e:
        raise _service_error("/api/inbox/accounts/remove", e) from e
    return SummaryResponse(**inbox.summary())
