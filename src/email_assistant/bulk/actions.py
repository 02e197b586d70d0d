"""Deferred action records, outcomes and error kinds."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Sequence


class ActionStatus(str, Enum):
    """Lifecycle of a deferred action.

    ``COMMITTING`` is entered when the grace window elapses and the
    executor is invoked; from there the action can only end up
    ``COMMITTED`` or ``FAILED``.
    """
    SCHEDULED = "scheduled"
    COMMITTING = "committing"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """True while the action still blocks its targets from a new action."""
        return self in (ActionStatus.SCHEDULED, ActionStatus.COMMITTING)


class CancelOutcome(str, Enum):
    """Result of an undo request."""
    CANCELLED = "cancelled"
    ALREADY_RESOLVED = "already_resolved"


class BulkActionError(Exception):
    """Base class for bulk action errors."""


class InvalidTarget(BulkActionError):
    """Raised when an action is requested for an unusable set of items."""

    def __init__(self, message: str, conflicting_ids: Sequence[str] = ()):
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids)


class ActionNotFound(BulkActionError, LookupError):
    """Raised when an action ID is unknown to the queue."""

    def __init__(self, action_id: str):
        super().__init__(f"Unknown action: {action_id}")
        self.action_id = action_id


@dataclass
class CommitResult:
    """Outcome of committing an action against the remote service."""
    success: bool
    reason: Optional[str] = None


@dataclass(eq=False)
class PendingAction:
    """A confirmed bulk delete waiting out its grace window."""
    action_id: str
    target_ids: tuple[str, ...]
    created_at: datetime
    grace_seconds: float
    deadline: float
    status: ActionStatus = ActionStatus.SCHEDULED
    failure_reason: Optional[str] = None
    retry_of: Optional[str] = None
    dismissed: bool = False
    resolved_at: Optional[datetime] = None
    # scheduler time after which a resolved action is forgotten
    evict_at: Optional[float] = None
    cancel_handle: Callable[[], CancelOutcome] = field(
        default=lambda: CancelOutcome.ALREADY_RESOLVED, repr=False
    )
    timer: Any = field(default=None, repr=False)

    @property
    def count(self) -> int:
        return len(self.target_ids)

    def remaining(self, now: float) -> float:
        """Seconds left before the action commits, given scheduler time."""
        if self.status is not ActionStatus.SCHEDULED:
            return 0.0
        return max(0.0, self.deadline - now)

    def to_dict(self, now: float | None = None) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "action_id": self.action_id,
            "target_ids": list(self.target_ids),
            "count": self.count,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "grace_seconds": self.grace_seconds,
            "failure_reason": self.failure_reason,
            "retry_of": self.retry_of,
        }
        if now is not None:
            data["remaining_seconds"] = round(self.remaining(now), 3)
        return data
