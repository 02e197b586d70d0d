"""Authoritative per-item workflow status.

The reconciler is the only place an item's visible status lives. It is
written by the deferred action queue (pending / normal) and the action
executor (removed / failed); everything else reads it.
"""

from __future__ import annotations

import threading
from collections import Counter
from enum import Enum
from typing import Iterable


class ItemStatus(str, Enum):
    """Visible status of an item."""
    NORMAL = "normal"
    PENDING_REMOVAL = "pending_removal"
    REMOVED = "removed"


class StateReconciler:
    """Maps item IDs to their status and failure indicator."""

    def __init__(self) -> None:
        self._status: dict[str, ItemStatus] = {}
        self._failures: dict[str, str] = {}
        self._lock = threading.Lock()

    def mark_pending(self, ids: Iterable[str]) -> None:
        with self._lock:
            for item_id in ids:
                self._status[item_id] = ItemStatus.PENDING_REMOVAL
                self._failures.pop(item_id, None)

    def mark_removed(self, ids: Iterable[str]) -> None:
        with self._lock:
            for item_id in ids:
                self._status[item_id] = ItemStatus.REMOVED
                self._failures.pop(item_id, None)

    def restore_normal(self, ids: Iterable[str]) -> None:
        with self._lock:
            for item_id in ids:
                # Normal is the default, so drop the entry entirely
                self._status.pop(item_id, None)
                self._failures.pop(item_id, None)

    def mark_failed(self, ids: Iterable[str], reason: str) -> None:
        """Keep items pending removal and flag the failed commit."""
        with self._lock:
            for item_id in ids:
                self._status[item_id] = ItemStatus.PENDING_REMOVAL
                self._failures[item_id] = reason

    def status_of(self, item_id: str) -> ItemStatus:
        return self._status.get(item_id, ItemStatus.NORMAL)

    def failure_of(self, item_id: str) -> str | None:
        """Return the commit failure reason for an item, if any."""
        return self._failures.get(item_id)

    def is_failed(self, item_id: str) -> bool:
        return item_id in self._failures

    def counts(self) -> dict[str, int]:
        """Count tracked items per non-normal status."""
        with self._lock:
            counter = Counter(status.value for status in self._status.values())
            counter["failed"] = len(self._failures)
        return dict(counter)
