"""Selection tracking for bulk actions."""

from __future__ import annotations

from typing import Iterator


class SelectionSet:
    """Item IDs currently selected by the user.

    Insertion order is kept so that a snapshot lists items in the order
    the user picked them.
    """

    def __init__(self) -> None:
        self._selected: dict[str, None] = {}

    def toggle(self, item_id: str) -> bool:
        """Select ``item_id`` if absent, deselect it if present.

        Returns:
            True if the item is selected after the call.
        """
        if item_id in self._selected:
            del self._selected[item_id]
            return False
        self._selected[item_id] = None
        return True

    def clear(self) -> None:
        self._selected.clear()

    def snapshot(self) -> list[str]:
        """Return a copy of the selected IDs, detached from later changes."""
        return list(self._selected)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
