from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

HISTORY_CAPACITY = 15
EMPTY_HISTORY = "No recent actions"


@dataclass
class HistoryStore:
    """Rolling window of executed-step summaries, oldest first.

    Owned by a single worker; not synchronized.
    """

    max_entries: int = HISTORY_CAPACITY
    _entries: List[str] = field(default_factory=list)

    def append(self, entry: str) -> None:
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            self._entries = self._entries[-self.max_entries :]

    def render(self) -> str:
        if not self._entries:
            return EMPTY_HISTORY
        return "\n".join(self._entries)

    def clear(self) -> None:
        self._entries = []

    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
