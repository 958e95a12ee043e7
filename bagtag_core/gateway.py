"""Persistence gateway contract and an in-memory reference implementation.

A challenge commit is applied as one unit:
- challenge record + participant records
- tag writes for the changed participants
- history rows

The in-memory gateway serialises commits with a lock and checks the tag
snapshot the engine computed from (optimistic concurrency) before writing.
Writes are staged and published only after every check passes, so a failed
commit leaves nothing behind.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Protocol, Sequence

from .errors import PersistenceError, StaleTagError
from .ladder import find_duplicate_tags
from .ledger import HistoryEntry, InMemoryLedger
from .models import ChallengeRecord, ParticipantRecord, Player
from .reconcile import TagChange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeCommit:
    challenge: ChallengeRecord
    participants: tuple[ParticipantRecord, ...]
    changes: tuple[TagChange, ...]
    history: tuple[HistoryEntry, ...]
    # Tags every participant held when the engine ran.
    expected_tags: Mapping[str, int | None]


class PersistenceGateway(Protocol):
    def load_players(self, player_ids: Sequence[str]) -> dict[str, Player]:
        ...

    def commit(self, commit: ChallengeCommit) -> None:
        ...


class InMemoryGateway:
    def __init__(self, players: Iterable[Player] = (), ledger: InMemoryLedger | None = None) -> None:
        self._players: dict[str, Player] = {p.player_id: p for p in players}
        self._challenges: dict[str, ChallengeRecord] = {}
        self._participants: list[ParticipantRecord] = []
        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self._lock = threading.Lock()

    # ---- reads ----

    def load_players(self, player_ids: Sequence[str]) -> dict[str, Player]:
        with self._lock:
            return {pid: self._players[pid] for pid in player_ids if pid in self._players}

    def players(self) -> list[Player]:
        with self._lock:
            return list(self._players.values())

    def get_player(self, player_id: str) -> Player | None:
        with self._lock:
            return self._players.get(player_id)

    def challenges(self) -> list[ChallengeRecord]:
        with self._lock:
            return sorted(self._challenges.values(), key=lambda c: c.challenge_date, reverse=True)

    def participants_for(self, challenge_id: str) -> list[ParticipantRecord]:
        with self._lock:
            rows = [p for p in self._participants if p.challenge_id == challenge_id]
        return sorted(rows, key=lambda p: p.finish_position)

    # ---- writes ----

    def commit(self, commit: ChallengeCommit) -> None:
        challenge_id = commit.challenge.challenge_id
        with self._lock:
            if challenge_id in self._challenges:
                raise PersistenceError(f"challenge {challenge_id} already recorded")

            stale = sorted(
                pid
                for pid, tag in commit.expected_tags.items()
                if pid not in self._players or self._players[pid].tag != tag
            )
            if stale:
                logger.warning(f"Commit {challenge_id} rejected, stale tags for {stale}")
                raise StaleTagError(stale)

            staged_players = dict(self._players)
            for change in commit.changes:
                current = staged_players.get(change.player_id)
                if current is None or current.tag != change.old_tag:
                    raise StaleTagError([change.player_id])
                staged_players[change.player_id] = replace(current, tag=change.new_tag)

            touched = {c.player_id for c in commit.changes}
            duplicates = {
                tag: ids
                for tag, ids in find_duplicate_tags(staged_players.values()).items()
                if touched.intersection(ids)
            }
            if duplicates:
                logger.error(f"Commit {challenge_id} would duplicate active tags: {duplicates}")
                raise PersistenceError(
                    f"commit would leave duplicate active tags: {sorted(duplicates)}",
                    details={"duplicates": duplicates},
                )

            staged_challenges = dict(self._challenges)
            staged_challenges[challenge_id] = commit.challenge
            staged_participants = self._participants + list(commit.participants)

            try:
                self.ledger.append_many(commit.history)
            except Exception as e:
                logger.error(f"Commit {challenge_id} failed writing history: {e}")
                raise PersistenceError(f"could not write tag history: {e}") from e

            self._players = staged_players
            self._challenges = staged_challenges
            self._participants = staged_participants

        logger.info(
            f"Committed challenge {challenge_id}: {len(commit.participants)} participants, "
            f"{len(commit.changes)} tag changes"
        )


__all__ = ["ChallengeCommit", "PersistenceGateway", "InMemoryGateway"]
