"""Commit step for deferred bulk actions."""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence

import structlog

from email_assistant.bulk.actions import CommitResult
from email_assistant.bulk.reconciler import StateReconciler

logger = structlog.get_logger(__name__)

CommitFunc = Callable[[list[str]], Awaitable[object]]


class ActionExecutor:
    """Performs the irreversible external commit for an expired action.

    The commit function is a single call to the remote service; it signals
    failure by raising. There is no automatic retry here: a failed commit is
    reported back and the items stay pending removal with a failure flag.
    """

    def __init__(self, commit_func: CommitFunc, reconciler: StateReconciler):
        self._commit_func = commit_func
        self._reconciler = reconciler

    async def commit(self, target_ids: Sequence[str]) -> CommitResult:
        """Commit removal of ``target_ids`` and apply the outcome."""
        ids = list(target_ids)
        try:
            await self._commit_func(ids)
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error("commit_failed", count=len(ids), error=reason)
            self._reconciler.mark_failed(ids, reason)
            return CommitResult(success=False, reason=reason)

        self._reconciler.mark_removed(ids)
        return CommitResult(success=True)
