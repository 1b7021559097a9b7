# src/composer/managers/history_manager.py
import logging
from collections import deque
from typing import Deque, List, Optional

from composer.model import HistoryEntry, PageDocument

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class HistoryManager:
    """
    Undo/redo history as a capped ring buffer of full document snapshots.

    Every recorded entry is a complete copy of the document, so moving through
    the history is a plain state replacement; nothing is replayed. When the
    buffer is full the oldest entry is dropped. Recording a new state while
    positioned in the past discards the redo tail.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self.limit = limit
        self._entries: Deque[HistoryEntry] = deque(maxlen=limit)
        self._cursor: int = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        """Index of the entry the document currently reflects (-1 when empty)."""
        return self._cursor

    def record(self, document: PageDocument, action: str) -> HistoryEntry:
        """Stores a snapshot of `document` as the newest entry."""
        while len(self._entries) - 1 > self._cursor:
            self._entries.pop()

        entry = HistoryEntry(action=action, data=document.clone())
        self._entries.append(entry)
        self._cursor = len(self._entries) - 1
        logger.debug("History: recorded '%s' (%d/%d entries)", action, len(self._entries), self.limit)
        return entry

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    def undo(self) -> Optional[PageDocument]:
        if not self.can_undo():
            return None
        return self.jump(self._cursor - 1)

    def redo(self) -> Optional[PageDocument]:
        if not self.can_redo():
            return None
        return self.jump(self._cursor + 1)

    def jump(self, index: int) -> PageDocument:
        """Returns a copy of the snapshot at `index` and makes it the current entry."""
        if index < 0:
            index += len(self._entries)
        if not 0 <= index < len(self._entries):
            raise IndexError(f"history index {index} out of range (0..{len(self._entries) - 1})")
        self._cursor = index
        return self._entries[index].data.clone()

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
