"""Tag reconciliation engine.

Redistributes the bag tags held by the participants of one challenge:
- The tag pool is the multiset of participants' current tags, sorted ascending.
- Participants are ranked by finish position (1 = best).
- The i-th best finisher receives the i-th smallest tag.

Direct challenges are the two-participant case of the same algorithm: the winner
ends up with min(a, b), the loser with max(a, b).

The engine is pure: no I/O, no registry access, no state. Recomputing from a
fresh read of current tags is always safe and yields identical output for
identical input.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Mapping, Sequence

from .errors import OrderingError, UntaggedParticipantError, ValidationError
from .types import ReconciliationPayload, UntaggedPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinishEntry:
    player_id: str
    finish_position: int


@dataclass(frozen=True)
class ParticipantOutcome:
    player_id: str
    finish_position: int
    tag_before: int | None
    tag_after: int | None

    @property
    def changed(self) -> bool:
        return self.tag_before != self.tag_after


@dataclass(frozen=True)
class TagChange:
    player_id: str
    old_tag: int
    new_tag: int


@dataclass(frozen=True)
class ReconciliationResult:
    # Every participant in finish order, changed or not.
    participants: tuple[ParticipantOutcome, ...]
    # Only the participants whose tag moved; what the gateway persists.
    changes: tuple[TagChange, ...]

    @property
    def is_noop(self) -> bool:
        return not self.changes

    def to_payload(self) -> ReconciliationPayload:
        return {
            "participants": [
                {
                    "player_id": p.player_id,
                    "tag_before": p.tag_before,
                    "tag_after": p.tag_after,
                }
                for p in self.participants
            ],
            "changes": [
                {"player_id": c.player_id, "old_tag": c.old_tag, "new_tag": c.new_tag}
                for c in self.changes
            ],
        }


def check_finish_order(positions: Sequence[int | None]) -> None:
    """Raise OrderingError unless positions are a dense permutation of 1..N."""
    n = len(positions)
    if any(p is None for p in positions):
        raise OrderingError("every participant needs a finish position")
    if any(isinstance(p, bool) or not isinstance(p, int) for p in positions):
        raise OrderingError(f"finish positions must be integers, got {list(positions)}")

    counts = Counter(positions)
    duplicates = sorted(p for p, c in counts.items() if c > 1)
    if duplicates:
        raise OrderingError(
            f"duplicate finish positions: {duplicates}",
            details={"duplicates": duplicates},
        )
    expected = set(range(1, n + 1))
    if set(positions) != expected:
        missing = sorted(expected - set(positions))
        unexpected = sorted(set(positions) - expected)
        raise OrderingError(
            f"finish positions must run 1..{n} without gaps "
            f"(missing {missing}, unexpected {unexpected})",
            details={"missing": missing, "unexpected": unexpected},
        )


def check_distinct_players(player_ids: Sequence[str]) -> None:
    """Raise ValidationError if a player appears more than once."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for pid in player_ids:
        if pid in seen and pid not in duplicates:
            duplicates.append(pid)
        seen.add(pid)
    if duplicates:
        raise ValidationError(
            f"players appear more than once: {', '.join(duplicates)}",
            details={"player_ids": duplicates},
        )


def reconcile_tags(
    entries: Sequence[FinishEntry],
    current_tags: Mapping[str, int | None],
    *,
    untagged_policy: UntaggedPolicy = "reject",
) -> ReconciliationResult:
    """
    Compute new tags for the participants of one challenge.

    Args:
      entries: participants with their finish positions.
      current_tags: player_id -> current tag (None when unranked); must cover every entry.
      untagged_policy: "reject" raises UntaggedParticipantError for untagged
        participants; "exclude" leaves them out of the pool with tag_after None.

    Raises:
      OrderingError: finish positions are not a dense 1..N permutation.
      ValidationError: a participant is listed twice or missing from current_tags.
      UntaggedParticipantError: untagged participant under the "reject" policy.
    """
    check_finish_order([e.finish_position for e in entries])
    check_distinct_players([e.player_id for e in entries])

    missing = [e.player_id for e in entries if e.player_id not in current_tags]
    if missing:
        raise ValidationError(
            f"no current tag known for: {', '.join(missing)}",
            details={"player_ids": missing},
        )

    ranked = sorted(entries, key=lambda e: e.finish_position)
    untagged = [e.player_id for e in ranked if current_tags[e.player_id] is None]
    if untagged and untagged_policy == "reject":
        raise UntaggedParticipantError(untagged)

    tagged = [e for e in ranked if current_tags[e.player_id] is not None]
    pool = sorted(current_tags[e.player_id] for e in tagged)
    if len(set(pool)) != len(pool):
        logger.warning(f"Tag pool holds duplicate tags: {pool}")

    assigned = {e.player_id: tag for e, tag in zip(tagged, pool)}

    participants: list[ParticipantOutcome] = []
    changes: list[TagChange] = []
    for entry in ranked:
        before = current_tags[entry.player_id]
        after = assigned.get(entry.player_id)
        participants.append(
            ParticipantOutcome(
                player_id=entry.player_id,
                finish_position=entry.finish_position,
                tag_before=before,
                tag_after=after,
            )
        )
        if before is not None and after is not None and before != after:
            changes.append(TagChange(player_id=entry.player_id, old_tag=before, new_tag=after))

    logger.debug(
        f"Reconciled {len(participants)} participants, pool={pool}, changes={len(changes)}"
    )
    return ReconciliationResult(participants=tuple(participants), changes=tuple(changes))


__all__ = [
    "FinishEntry",
    "ParticipantOutcome",
    "TagChange",
    "ReconciliationResult",
    "check_distinct_players",
    "check_finish_order",
    "reconcile_tags",
]
