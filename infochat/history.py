from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from . import config
from .models import HistoryEntry
from .storage import HistoryStore

ELLIPSIS = "…"


def make_preview(text: str, limit: Optional[int] = None) -> str:
    """Return ``text`` cut to ``limit`` characters, marking truncation with an ellipsis."""

    limit = limit if limit is not None else config.PREVIEW_LENGTH
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


class HistoryManager:
    """Newest-first, bounded list of past user submissions."""

    def __init__(
        self,
        store: HistoryStore,
        *,
        limit: Optional[int] = None,
        preview_length: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.limit = limit if limit is not None else store.limit
        if self.limit <= 0:
            raise ValueError("history limit must be positive")
        self.preview_length = preview_length if preview_length is not None else config.PREVIEW_LENGTH
        if self.preview_length <= 0:
            raise ValueError("preview length must be positive")
        self._clock = clock or time.time
        self._logger = logger or logging.getLogger(__name__)
        self._entries: List[HistoryEntry] = store.load()[: self.limit]

    def __len__(self) -> int:
        return len(self._entries)

    def _next_id(self, now: float) -> int:
        candidate = int(now * 1000)
        newest = max((entry.id for entry in self._entries), default=None)
        if newest is not None and candidate <= newest:
            candidate = newest + 1
        return candidate

    def add(self, message_text: str) -> HistoryEntry:
        now = self._clock()
        entry = HistoryEntry(
            id=self._next_id(now),
            message=message_text,
            preview=make_preview(message_text, self.preview_length),
            timestamp=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        )
        self._entries.insert(0, entry)
        del self._entries[self.limit :]
        self.store.save(self._entries)
        self._logger.debug("Recorded history entry %s (%d stored)", entry.id, len(self._entries))
        return entry

    def clear(self) -> None:
        self._entries = []
        self.store.save(self._entries)
        self._logger.info("History cleared")

    def all(self) -> List[HistoryEntry]:
        return list(self._entries)

    def get(self, entry_id: int) -> Optional[HistoryEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None


__all__ = ["ELLIPSIS", "HistoryManager", "make_preview"]
