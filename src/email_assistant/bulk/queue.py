"""Deferred action queue.

Owns every bulk action confirmed in this session, keyed by action ID, and
the timer that will commit it. Each action moves through an explicit state
machine:

    scheduled --(undo)--> cancelled
    scheduled --(grace window elapsed)--> committing --> committed | failed

Undo and timer expiry are the only two writers of a scheduled action's
fate. Both go through a compare-and-set on the action status under the
queue lock, so exactly one of them wins no matter how close together
they arrive. Resolved actions are kept for a retention window so repeated
undo requests still get an answer, then forgotten. State is process-local
and is lost on restart.
"""

from __future__ import annotations

import functools
import threading
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from email_assistant.bulk.actions import (
    ActionNotFound,
    ActionStatus,
    CancelOutcome,
    InvalidTarget,
    PendingAction,
)
from email_assistant.bulk.executor import ActionExecutor
from email_assistant.bulk.reconciler import ItemStatus, StateReconciler
from email_assistant.bulk.scheduler import AsyncioScheduler, Scheduler
from email_assistant.logging import (
    log_action_cancelled,
    log_action_committed,
    log_action_failed,
    log_action_scheduled,
)

logger = structlog.get_logger(__name__)

DEFAULT_GRACE_SECONDS = 120.0
RESOLVED_RETENTION_SECONDS = 600.0


class DeferredActionQueue:
    """Schedules, cancels and commits deferred bulk actions."""

    def __init__(
        self,
        executor: ActionExecutor,
        reconciler: StateReconciler,
        scheduler: Optional[Scheduler] = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        retention_seconds: float = RESOLVED_RETENTION_SECONDS,
    ):
        self._executor = executor
        self._reconciler = reconciler
        self._scheduler = scheduler or AsyncioScheduler()
        self.grace_seconds = grace_seconds
        self.retention_seconds = retention_seconds

        self._actions: dict[str, PendingAction] = {}
        # item ID -> ID of the action currently deciding its fate
        self._governor: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def enqueue(
        self,
        target_ids: Iterable[str],
        grace_seconds: Optional[float] = None,
    ) -> PendingAction:
        """Schedule removal of ``target_ids`` after the grace window.

        Raises:
            InvalidTarget: if no targets are given, or any target is already
                pending removal under another action or already removed.
                Nothing is changed in that case.
        """
        with self._lock:
            action = self._enqueue_locked(target_ids, grace_seconds)
        log_action_scheduled(
            logger, action.action_id, action.target_ids, action.grace_seconds
        )
        return action

    def cancel(self, action_id: str) -> CancelOutcome:
        """Undo a scheduled action.

        Returns ``ALREADY_RESOLVED`` without changing anything if the action
        was already cancelled, or has started or finished committing.

        Raises:
            ActionNotFound: if the action ID is unknown, or was resolved
                longer ago than the retention window.
        """
        with self._lock:
            action = self._get(action_id)
            if action.status is not ActionStatus.SCHEDULED:
                outcome = CancelOutcome.ALREADY_RESOLVED
            else:
                action.status = ActionStatus.CANCELLED
                action.resolved_at = _now_utc()
                self._schedule_eviction(action)
                if action.timer is not None:
                    action.timer.cancel()
                self._reconciler.restore_normal(self._release(action))
                outcome = CancelOutcome.CANCELLED

        if outcome is CancelOutcome.CANCELLED:
            log_action_cancelled(logger, action_id, action.count)
        else:
            logger.info(
                "bulk_action_cancel_ignored",
                action_id=action_id,
                status=action.status.value,
            )
        return outcome

    def retry(
        self,
        action_id: str,
        grace_seconds: Optional[float] = None,
    ) -> PendingAction:
        """Schedule a new action for the items a failed action left behind.

        Raises:
            ActionNotFound: if the action ID is unknown.
            InvalidTarget: if the action is not an undismissed failure, or
                none of its items are still waiting on it.
        """
        with self._lock:
            action = self._get(action_id)
            if action.status is not ActionStatus.FAILED or action.dismissed:
                raise InvalidTarget(
                    f"Action {action_id} is {action.status.value}; only failed actions can be retried"
                )
            targets = self._governed_by(action)
            if not targets:
                raise InvalidTarget(f"Action {action_id} has no items left to retry")
            new_action = self._enqueue_locked(targets, grace_seconds, retry_of=action_id)
            action.dismissed = True
            self._schedule_eviction(action)

        logger.info(
            "bulk_action_retried",
            action_id=action_id,
            new_action_id=new_action.action_id,
        )
        log_action_scheduled(
            logger, new_action.action_id, new_action.target_ids, new_action.grace_seconds
        )
        return new_action

    def dismiss(self, action_id: str) -> bool:
        """Give up on a failed action and show its items as normal again.

        Returns:
            True if the action was dismissed, False if it is not an
            undismissed failure.

        Raises:
            ActionNotFound: if the action ID is unknown.
        """
        with self._lock:
            action = self._get(action_id)
            if action.status is not ActionStatus.FAILED or action.dismissed:
                return False
            action.dismissed = True
            self._schedule_eviction(action)
            released = self._release(action)
            self._reconciler.restore_normal(released)

        logger.info("bulk_action_dismissed", action_id=action_id, count=len(released))
        return True

    def get(self, action_id: str) -> PendingAction:
        with self._lock:
            return self._get(action_id)

    def list_pending(self) -> list[PendingAction]:
        """Scheduled actions in creation order, for undo notifications."""
        with self._lock:
            self._gc()
            return [
                a for a in self._actions.values()
                if a.status is ActionStatus.SCHEDULED
            ]

    def list_failed(self) -> list[PendingAction]:
        """Failed actions the user has not retried or dismissed yet."""
        with self._lock:
            self._gc()
            return [
                a for a in self._actions.values()
                if a.status is ActionStatus.FAILED and not a.dismissed
            ]

    def remaining(self, action: PendingAction) -> float:
        """Seconds left in an action's grace window."""
        return action.remaining(self._scheduler.now())

    def governing_action(self, item_id: str) -> Optional[PendingAction]:
        """Return the action currently deciding an item's fate, if any."""
        with self._lock:
            self._gc()
            action_id = self._governor.get(item_id)
            return self._actions.get(action_id) if action_id else None

    def shutdown(self) -> int:
        """Stop all timers; scheduled actions are dropped uncommitted.

        Returns:
            Number of scheduled actions that were dropped.
        """
        with self._lock:
            dropped = [
                a for a in self._actions.values()
                if a.status is ActionStatus.SCHEDULED
            ]
            for action in dropped:
                if action.timer is not None:
                    action.timer.cancel()
                action.status = ActionStatus.CANCELLED
                action.resolved_at = _now_utc()
                self._schedule_eviction(action)
                self._reconciler.restore_normal(self._release(action))

        if dropped:
            logger.warning(
                "pending_actions_dropped",
                count=len(dropped),
                action_ids=[a.action_id for a in dropped],
            )
        return len(dropped)

    async def aclose(self) -> None:
        """Shut down and wait for commits already in flight."""
        self.shutdown()
        await self._scheduler.aclose()

    # ------------------------------------------------------------------
    # Timer path
    # ------------------------------------------------------------------

    def _expire(self, action_id: str) -> None:
        """Timer callback: claim the action for commit if still scheduled."""
        with self._lock:
            action = self._actions.get(action_id)
            if action is None or action.status is not ActionStatus.SCHEDULED:
                logger.debug("timer_fired_after_resolution", action_id=action_id)
                return
            action.status = ActionStatus.COMMITTING

        logger.info("bulk_action_committing", action_id=action_id, count=action.count)
        self._scheduler.spawn(self._commit(action))

    async def _commit(self, action: PendingAction) -> None:
        result = await self._executor.commit(action.target_ids)

        with self._lock:
            action.resolved_at = _now_utc()
            if result.success:
                action.status = ActionStatus.COMMITTED
                # REMOVED items are blocked by the reconciler from here on
                self._release(action)
                self._schedule_eviction(action)
            else:
                action.status = ActionStatus.FAILED
                action.failure_reason = result.reason

        if result.success:
            log_action_committed(logger, action.action_id, action.count)
        else:
            log_action_failed(
                logger, action.action_id, action.count, result.reason or "unknown"
            )

    # ------------------------------------------------------------------
    # Helpers (caller holds self._lock)
    # ------------------------------------------------------------------

    def _enqueue_locked(
        self,
        target_ids: Iterable[str],
        grace_seconds: Optional[float],
        retry_of: Optional[str] = None,
    ) -> PendingAction:
        self._gc()
        # Collapse duplicates, keep first occurrence order
        targets = tuple(dict.fromkeys(target_ids))
        if not targets:
            raise InvalidTarget("No items selected")

        grace = self.grace_seconds if grace_seconds is None else grace_seconds
        if grace < 0:
            raise ValueError("grace_seconds must be >= 0")

        conflicts = [item_id for item_id in targets if self._is_claimed(item_id)]
        if conflicts:
            raise InvalidTarget(
                f"{len(conflicts)} item(s) already pending removal or removed",
                conflicts,
            )

        action_id = uuid.uuid4().hex
        action = PendingAction(
            action_id=action_id,
            target_ids=targets,
            created_at=_now_utc(),
            grace_seconds=grace,
            deadline=self._scheduler.now() + grace,
            retry_of=retry_of,
            cancel_handle=functools.partial(self.cancel, action_id),
        )
        self._actions[action_id] = action
        for item_id in targets:
            self._governor[item_id] = action_id
        self._reconciler.mark_pending(targets)
        action.timer = self._scheduler.call_later(
            grace, functools.partial(self._expire, action_id)
        )
        return action

    def _is_claimed(self, item_id: str) -> bool:
        if self._reconciler.status_of(item_id) is ItemStatus.REMOVED:
            return True
        governor = self._actions.get(self._governor.get(item_id, ""))
        return governor is not None and governor.status.is_active

    def _governed_by(self, action: PendingAction) -> list[str]:
        return [i for i in action.target_ids if self._governor.get(i) == action.action_id]

    def _release(self, action: PendingAction) -> list[str]:
        """Drop the action's claim on items it still governs."""
        released = self._governed_by(action)
        for item_id in released:
            del self._governor[item_id]
        return released

    def _schedule_eviction(self, action: PendingAction) -> None:
        action.evict_at = self._scheduler.now() + self.retention_seconds

    def _gc(self) -> None:
        """Forget resolved actions whose retention window has passed."""
        now = self._scheduler.now()
        expired = [
            a for a in self._actions.values()
            if a.evict_at is not None and a.evict_at <= now
        ]
        for action in expired:
            del self._actions[action.action_id]
            self._release(action)

    def _get(self, action_id: str) -> PendingAction:
        self._gc()
        action = self._actions.get(action_id)
        if action is None:
            raise ActionNotFound(action_id)
        return action


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)
