"""Bounded, newest-first history of log entries."""

from __future__ import annotations

from typing import Iterable, Iterator

from .models import LogEntry

DEFAULT_CAPACITY = 50


class LogBuffer:
    """Holds at most ``capacity`` entries, newest first.

    Entries come from the push channel, the pull logs snapshot, and local
    client actions.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: list[LogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> LogEntry | None:
        return self._entries[0] if self._entries else None

    def append(self, entry: LogEntry) -> None:
        """Insert an entry, evicting the oldest when full.

        The usual case is an entry at least as new as the head; an entry
        carrying an older timestamp is placed ahead of any entries that are
        strictly older than it.
        """
        index = 0
        while (
            index < len(self._entries)
            and self._entries[index].timestamp > entry.timestamp
        ):
            index += 1
        self._entries.insert(index, entry)
        del self._entries[self.capacity:]

    def replace_all(self, entries: Iterable[LogEntry]) -> None:
        """Discard the buffer and keep the newest entries of a snapshot."""
        ordered = sorted(entries, key=lambda e: e.timestamp, reverse=True)
        self._entries = ordered[: self.capacity]
