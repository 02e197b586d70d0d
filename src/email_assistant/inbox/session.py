"""Inbox session state.

Ties the bulk action subsystem to the emails and accounts fetched from the
email service. This is the state the UI renders: which emails are visible,
which are selected or pending removal, and the undo notifications.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from email_assistant.bulk import (
    ActionExecutor,
    CancelOutcome,
    DeferredActionQueue,
    ItemStatus,
    PendingAction,
    Scheduler,
    SelectionSet,
    StateReconciler,
)
from email_assistant.client import EmailServiceClient
from email_assistant.config import ALLOWED_CHECK_INTERVALS, Settings
from email_assistant.models import Account, Email

logger = structlog.get_logger(__name__)


@dataclass
class EmailView:
    """An email as the list should display it."""
    email: Email
    status: ItemStatus
    selected: bool
    failure_reason: Optional[str] = None

    @property
    def pending_delete(self) -> bool:
        return self.status is ItemStatus.PENDING_REMOVAL


@dataclass
class UndoNotification:
    """One undo banner per scheduled bulk action."""
    action_id: str
    count: int
    remaining_seconds: float
    message: str


def _format_window(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    secs = int(seconds)
    return f"{secs} second{'s' if secs != 1 else ''}"


class InboxSession:
    """Per-user inbox state backed by the email service."""

    def __init__(
        self,
        client: EmailServiceClient,
        settings: Settings,
        scheduler: Optional[Scheduler] = None,
    ):
        self.client = client
        self.reconciler = StateReconciler()
        self.selection = SelectionSet()
        self.executor = ActionExecutor(client.delete_emails, self.reconciler)
        self.queue = DeferredActionQueue(
            self.executor,
            self.reconciler,
            scheduler=scheduler,
            grace_seconds=settings.grace_period_seconds,
        )
        self.check_interval_hours = settings.check_interval_hours
        self.emails: list[Email] = []
        self.accounts: list[Account] = []

    async def refresh(self) -> None:
        """Reload accounts and emails from the service."""
        self.accounts = await self.client.list_accounts()
        self.emails = await self.client.list_emails()
        logger.info(
            "inbox_refreshed",
            accounts=len(self.accounts),
            emails=len(self.emails),
        )

    # --- Selection ---

    def toggle(self, email_id: str) -> bool:
        return self.selection.toggle(email_id)

    def clear_selection(self) -> None:
        self.selection.clear()

    # --- Bulk delete ---

    def confirm_bulk_delete(self) -> PendingAction:
        """Schedule deletion of the current selection and clear it.

        The selection is left untouched if the queue rejects the request.
        """
        action = self.queue.enqueue(self.selection.snapshot())
        self.selection.clear()
        return action

    def undo(self, action_id: str) -> CancelOutcome:
        return self.queue.cancel(action_id)

    def retry(self, action_id: str) -> PendingAction:
        return self.queue.retry(action_id)

    def dismiss(self, action_id: str) -> bool:
        return self.queue.dismiss(action_id)

    # --- Views ---

    def visible_emails(self) -> list[EmailView]:
        """Emails that have not been removed, with their display state."""
        views = []
        for email in self.emails:
            status = self.reconciler.status_of(email.id)
            if status is ItemStatus.REMOVED:
                continue
            views.append(EmailView(
                email=email,
                status=status,
                selected=email.id in self.selection,
                failure_reason=self.reconciler.failure_of(email.id),
            ))
        return views

    def notifications(self) -> list[UndoNotification]:
        return [
            UndoNotification(
                action_id=action.action_id,
                count=action.count,
                remaining_seconds=round(self.queue.remaining(action), 3),
                message=(
                    f"{action.count} email(s) will be deleted in "
                    f"{_format_window(action.grace_seconds)}"
                ),
            )
            for action in self.queue.list_pending()
        ]

    def summary(self) -> dict:
        return {
            "email_count": len(self.visible_emails()),
            "account_count": len(self.accounts),
            "selected_count": len(self.selection),
            "pending_count": len(self.queue.list_pending()),
            "check_interval_hours": self.check_interval_hours,
        }

    # --- Settings and accounts ---

    async def set_check_interval(self, hours: int) -> None:
        """Change how often the service checks the linked mailboxes.

        Raises:
            ValueError: if ``hours`` is not an offered interval.
        """
        if hours not in ALLOWED_CHECK_INTERVALS:
            raise ValueError(f"Check interval must be one of {ALLOWED_CHECK_INTERVALS}")
        self.check_interval_hours = hours
        await self.client.update_check_interval(hours)
        logger.info("check_interval_updated", hours=hours)

    async def remove_account(self, account_id: str) -> None:
        await self.client.remove_account(account_id)
        logger.info("account_removed", account_id=account_id)
        await self.refresh()

    async def aclose(self) -> None:
        await self.queue.aclose()
        await self.client.aclose()
