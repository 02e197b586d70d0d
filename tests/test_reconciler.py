"""Unit tests for StateReconciler."""

from email_assistant.bulk import ItemStatus, StateReconciler


class TestStatusTransitions:
    """Tests for the reconciler status map."""

    def test_unknown_item_is_normal(self):
        reconciler = StateReconciler()
        assert reconciler.status_of("A") is ItemStatus.NORMAL
        assert reconciler.failure_of("A") is None

    def test_mark_pending_then_restore(self):
        reconciler = StateReconciler()
        reconciler.mark_pending(["A", "B"])
        assert reconciler.status_of("A") is ItemStatus.PENDING_REMOVAL
        assert reconciler.status_of("B") is ItemStatus.PENDING_REMOVAL

        reconciler.restore_normal(["A", "B"])
        assert reconciler.status_of("A") is ItemStatus.NORMAL
        assert reconciler.counts() == {"failed": 0}

    def test_mark_removed(self):
        reconciler = StateReconciler()
        reconciler.mark_pending(["A"])
        reconciler.mark_removed(["A"])
        assert reconciler.status_of("A") is ItemStatus.REMOVED

    def test_mark_failed_keeps_pending_with_reason(self):
        reconciler = StateReconciler()
        reconciler.mark_pending(["A"])
        reconciler.mark_failed(["A"], "HTTP 500")

        assert reconciler.status_of("A") is ItemStatus.PENDING_REMOVAL
        assert reconciler.is_failed("A")
        assert reconciler.failure_of("A") == "HTTP 500"

    def test_mark_pending_clears_failure_flag(self):
        reconciler = StateReconciler()
        reconciler.mark_failed(["A"], "timeout")
        reconciler.mark_pending(["A"])
        assert not reconciler.is_failed("A")

    def test_counts(self):
        reconciler = StateReconciler()
        reconciler.mark_pending(["A", "B"])
        reconciler.mark_removed(["C"])
        reconciler.mark_failed(["B"], "nope")
        assert reconciler.counts() == {
            "pending_removal": 2,
            "removed": 1,
            "failed": 1,
        }
