"""Append-only tag history."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Literal, Sequence

from .reconcile import TagChange


@dataclass(frozen=True)
class HistoryEntry:
    player_id: str
    old_tag: int
    new_tag: int
    changed_at: datetime
    challenge_id: str

    @property
    def delta(self) -> int:
        # Positive when the player moved up the ladder.
        return self.old_tag - self.new_tag

    @property
    def direction(self) -> Literal["improved", "worsened"]:
        return "improved" if self.new_tag < self.old_tag else "worsened"


def build_history_entries(
    challenge_id: str, changes: Sequence[TagChange], changed_at: datetime
) -> tuple[HistoryEntry, ...]:
    """One entry per change; unchanged participants never produce a row."""
    return tuple(
        HistoryEntry(
            player_id=c.player_id,
            old_tag=c.old_tag,
            new_tag=c.new_tag,
            changed_at=changed_at,
            challenge_id=challenge_id,
        )
        for c in changes
        if c.old_tag != c.new_tag
    )


class InMemoryLedger:
    """Stores history entries append-only; reads newest first."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def append_many(self, entries: Iterable[HistoryEntry]) -> None:
        batch = list(entries)
        with self._lock:
            self._entries.extend(batch)

    def entries(self, limit: int | None = None) -> list[HistoryEntry]:
        """Timestamp descending; equal timestamps keep insertion order."""
        with self._lock:
            indexed = list(enumerate(self._entries))
        indexed.sort(key=lambda pair: (-pair[1].changed_at.timestamp(), pair[0]))
        rows = [entry for _, entry in indexed]
        return rows if limit is None else rows[:limit]

    def for_player(self, player_id: str) -> list[HistoryEntry]:
        return [e for e in self.entries() if e.player_id == player_id]


__all__ = ["HistoryEntry", "build_history_entries", "InMemoryLedger"]
