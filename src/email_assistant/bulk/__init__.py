"""Deferred bulk action subsystem.

Selection tracking, grace-window scheduling with undo, the commit step,
and the per-item status map that the UI renders from.
"""

from email_assistant.bulk.actions import (
    ActionNotFound,
    ActionStatus,
    BulkActionError,
    CancelOutcome,
    CommitResult,
    InvalidTarget,
    PendingAction,
)
from email_assistant.bulk.executor import ActionExecutor
from email_assistant.bulk.queue import DeferredActionQueue
from email_assistant.bulk.reconciler import ItemStatus, StateReconciler
from email_assistant.bulk.scheduler import AsyncioScheduler, ManualScheduler, Scheduler
from email_assistant.bulk.selection import SelectionSet

__all__ = [
    "ActionExecutor",
    "ActionNotFound",
    "ActionStatus",
    "AsyncioScheduler",
    "BulkActionError",
    "CancelOutcome",
    "CommitResult",
    "DeferredActionQueue",
    "InvalidTarget",
    "ItemStatus",
    "ManualScheduler",
    "PendingAction",
    "Scheduler",
    "SelectionSet",
    "StateReconciler",
]
