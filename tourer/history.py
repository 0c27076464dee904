"""Bounded undo/redo history for route planning."""

import time
from typing import Optional, Sequence

from .config import CONFIG
from .models import Coordinate, HistoryEntry, Waypoint


class RouteHistory:
    """Ordered snapshots plus a cursor.

    The cursor is always a valid index into the entries, or -1 when empty.
    Entries after the cursor are redo states and are dropped on the next push.
    """

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or CONFIG["max_history_size"]
        self.entries: list[HistoryEntry] = []
        self.index: int = -1

    def __len__(self) -> int:
        return len(self.entries)

    def clear(self):
        self.entries = []
        self.index = -1

    def push(self, waypoints: Sequence[Waypoint], geometry: Sequence[Coordinate]) -> HistoryEntry:
        """Record a new state, discarding redo states and evicting the oldest entry past the cap"""
        entry = HistoryEntry(
            waypoints=tuple(waypoints),
            geometry=tuple(geometry),
            timestamp=time.time(),
        )
        del self.entries[self.index + 1:]
        self.entries.append(entry)
        self.index = len(self.entries) - 1

        while len(self.entries) > self.max_size:
            self.entries.pop(0)
            # Evicted entry always sits before the cursor
            self.index -= 1
        return entry

    def can_undo(self) -> bool:
        return self.index > 0

    def can_redo(self) -> bool:
        return self.index < len(self.entries) - 1

    def undo(self) -> Optional[HistoryEntry]:
        """Step back one entry; None at the boundary"""
        if not self.can_undo():
            return None
        self.index -= 1
        return self.entries[self.index]

    def redo(self) -> Optional[HistoryEntry]:
        """Step forward one entry; None at the boundary"""
        if not self.can_redo():
            return None
        self.index += 1
        return self.entries[self.index]

    @property
    def current(self) -> Optional[HistoryEntry]:
        if 0 <= self.index < len(self.entries):
            return self.entries[self.index]
        return None
