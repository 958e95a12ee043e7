"""Type definitions for challenge submissions, registry rows and engine output."""
from __future__ import annotations

from typing import List, Literal, Optional, TypedDict

ChallengeType = Literal["Direct", "Group"]
Division = Literal["Mixed", "Female", "Junior", "Senior"]
PlayerStatus = Literal["Active", "Inactive"]
UntaggedPolicy = Literal["reject", "exclude"]

DIVISIONS: tuple[str, ...] = ("Mixed", "Female", "Junior", "Senior")


class ParticipantPayload(TypedDict, total=False):
    """One entry of the submission's participants list."""
    player_id: str
    # Optional for Direct challenges (derived from winner_id)
    finish_position: Optional[int]


class SubmissionPayload(TypedDict, total=False):
    """
    TypedDict for challenge submissions passed to parse_submission().

    winner_id is required and meaningful only for Direct challenges.
    """
    challenge_type: ChallengeType
    division: Division
    date: str  # ISO-8601 timestamp, datetime also accepted
    notes: Optional[str]
    participants: List[ParticipantPayload]
    winner_id: Optional[str]


class PlayerRow(TypedDict, total=False):
    """A player row as the registry stores it."""
    player_id: str
    player_name: str
    player_division: Division
    player_status: PlayerStatus
    bag_tag: Optional[int]


class ParticipantOutcomePayload(TypedDict):
    player_id: str
    tag_before: Optional[int]
    tag_after: Optional[int]


class TagChangePayload(TypedDict):
    player_id: str
    old_tag: int
    new_tag: int


class ReconciliationPayload(TypedDict):
    """Engine output as consumed by the gateway and the ledger."""
    participants: List[ParticipantOutcomePayload]
    changes: List[TagChangePayload]
