"""
Bounded linear undo/redo history of mask snapshots.

The history holds at most `capacity` snapshots in a list with an index
pointing at the snapshot that matches the live mask. A push after an undo
discards the redo branch; a push beyond capacity evicts the oldest entry and
shifts the index down by one.
"""

import logging
from typing import List, Optional

from OC_Libs.constants import HISTORY_CAPACITY
from OC_Libs.MaskEditingLib.mask_store import MaskSnapshot

logger = logging.getLogger(__name__)


class HistoryManager:
    """
    Undo/redo stack for mask edits.

    The index is -1 when the history is empty and within [0, len - 1]
    otherwise.

    Args:
        capacity: Maximum number of snapshots kept. Default: 20.

    Example:
        >>> history = HistoryManager()
        >>> history.push(store.snapshot())
        >>> store.apply_stroke((0, 0), (50, 50), 10, "erase")
        >>> history.push(store.snapshot())
        >>> store.restore(history.undo())
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if int(capacity) < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")
        self._capacity = int(capacity)
        self._entries: List[MaskSnapshot] = []
        self._index = -1

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, snapshot: MaskSnapshot) -> None:
        """
        Record a new snapshot after the current one.

        Args:
            snapshot: Snapshot of the live mask after an edit
        """
        if not isinstance(snapshot, MaskSnapshot):
            raise TypeError(f"Expected MaskSnapshot, got {type(snapshot)}")

        # Drop the redo branch
        if self._index < len(self._entries) - 1:
            dropped = len(self._entries) - 1 - self._index
            del self._entries[self._index + 1:]
            logger.debug(f"History push discarded {dropped} redo entries")

        self._entries.append(snapshot)
        self._index = len(self._entries) - 1

        if len(self._entries) > self._capacity:
            self._entries.pop(0)
            self._index -= 1
            logger.debug(f"History full ({self._capacity}), evicted oldest entry")

        logger.debug(f"History push: index={self._index}, len={len(self._entries)}")

    def undo(self) -> Optional[MaskSnapshot]:
        """
        Step back one entry.

        Returns:
            The snapshot the mask should be restored to, or None when there
            is nothing to undo
        """
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> Optional[MaskSnapshot]:
        """
        Step forward one entry.

        Returns:
            The snapshot the mask should be restored to, or None when there
            is nothing to redo
        """
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index]

    def current(self) -> Optional[MaskSnapshot]:
        if self._index < 0:
            return None
        return self._entries[self._index]

    def reset(self) -> None:
        self._entries.clear()
        self._index = -1
        logger.debug("History cleared")

    def __repr__(self) -> str:
        return f"HistoryManager(index={self._index}, len={len(self._entries)}, capacity={self._capacity})"
