"""
Playlist and playback state for Cadence.

The daemon drives a single media engine, so there is exactly one playlist.
It is the single source of truth for "what is queued" and "which entry is
current", and it is mutated from two threads:

- the request worker thread, while executing a client command
- the media engine's event thread, when a stream finishes (auto-advance)

Design decisions:
- Entries are plain stream identifiers (URIs or file paths), duplicates allowed
- `current_index` is -1 when nothing is selected (stopped or empty playlist)
- All access goes through `lock`, a re-entrant lock. Auto-advance runs the same
  play path a client command uses while already holding it.
- `clear()` replaces the entry list wholesale instead of mutating it in place,
  so snapshots handed out earlier stay valid.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

NO_INDEX = -1


@dataclass
class Playlist:
    """
    Ordered list of stream identifiers plus the current position.

    Callers are expected to hold `lock` around any sequence of reads and
    writes that must be consistent (e.g. "check the index, then advance it").
    The individual methods take the lock too, so single calls are safe on
    their own.
    """

    entries: list[str] = field(default_factory=list)
    current_index: int = NO_INDEX
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __len__(self) -> int:
        """Return number of entries in the playlist."""
        with self.lock:
            return len(self.entries)

    @property
    def is_empty(self) -> bool:
        """Check if playlist is empty."""
        return len(self) == 0

    @property
    def current_entry(self) -> str | None:
        """Get the entry at the current index, or None if nothing is selected."""
        with self.lock:
            if 0 <= self.current_index < len(self.entries):
                return self.entries[self.current_index]
            return None

    @property
    def has_next(self) -> bool:
        """Check if there's an entry after the current one."""
        with self.lock:
            return 0 < len(self.entries) and self.current_index < len(self.entries) - 1

    @property
    def has_previous(self) -> bool:
        """Check if there's an entry before the current one."""
        with self.lock:
            return self.current_index > 0

    def in_range(self, index: int) -> bool:
        """Check whether `index` names an existing entry."""
        with self.lock:
            return 0 <= index < len(self.entries)

    def get(self, index: int) -> str:
        """
        Get the entry at `index`.

        Raises:
            IndexError: If the index is out of range (negative indexes are
                rejected rather than counted from the end).
        """
        with self.lock:
            if not self.in_range(index):
                raise IndexError(f"Playlist index {index} out of range")
            return self.entries[index]

    def add(self, entry: str) -> int:
        """
        Append an entry to the playlist.

        Returns:
            The index of the new entry.
        """
        with self.lock:
            self.entries.append(entry)
            idx = len(self.entries) - 1
        logger.debug("playlist.add: entry=%s, idx=%d", entry, idx)
        return idx

    def select(self, index: int) -> None:
        """Make `index` the current position (-1 deselects)."""
        with self.lock:
            if index != NO_INDEX and not self.in_range(index):
                raise IndexError(f"Playlist index {index} out of range")
            old_index = self.current_index
            self.current_index = index
        logger.debug("playlist.select: current_index: %d -> %d", old_index, index)

    def deselect(self) -> None:
        """Forget the current position (playback stopped)."""
        self.select(NO_INDEX)

    def clear(self) -> int:
        """
        Replace the playlist with an empty one and reset the index.

        Returns:
            Number of entries that were cleared.
        """
        with self.lock:
            count = len(self.entries)
            self.entries = []
            self.current_index = NO_INDEX
        logger.info("playlist.clear: cleared %d entries", count)
        return count

    def snapshot(self) -> tuple[str, ...]:
        """Return an immutable copy of the entries."""
        with self.lock:
            return tuple(self.entries)
