"""
Challenge submission validation using Pydantic v2
Shape checks, Direct/Group contract checks and registry checks
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import DEFAULT_SETTINGS, LadderSettings
from .errors import ValidationError
from .models import Player
from .reconcile import FinishEntry, check_distinct_players, check_finish_order
from .types import ChallengeType, Division

logger = logging.getLogger(__name__)

# ==================== SCHEMAS ====================


class ParticipantEntry(BaseModel):
    """One participant as submitted"""

    player_id: str = Field(..., min_length=1, max_length=64, description="Player ID")
    # Positions are range-checked by the ordering check, not here
    finish_position: Optional[int] = Field(None, description="1 = best finisher")

    model_config = ConfigDict(extra="ignore")

    @field_validator("player_id", mode="before")
    @classmethod
    def strip_player_id(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v


class ChallengeSubmission(BaseModel):
    """A challenge outcome as submitted by the recording form"""

    challenge_type: ChallengeType
    division: Division
    date: datetime = Field(..., description="When the challenge was played")
    notes: Optional[str] = Field(None, description="Course, event, or any notes")
    participants: List[ParticipantEntry] = Field(..., description="Players and finish order")
    winner_id: Optional[str] = Field(None, max_length=64, description="Direct only")

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC so all challenge dates compare"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        """Sanitize notes; blank notes become None"""
        if v is None:
            return v
        v = InputSanitizer.sanitize_notes(v)
        return v or None

    @field_validator("winner_id", mode="before")
    @classmethod
    def normalize_winner(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @property
    def player_ids(self) -> list[str]:
        return [p.player_id for p in self.participants]


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_notes(notes: str) -> str:
        """Strip control characters but keep newlines and tabs"""
        notes = InputSanitizer.sanitize_string(notes, 10000)
        notes = re.sub(r"[\x00-\x08\x0b-\x1f\x7f]", "", notes)
        return notes.strip()


# ==================== ENTRY POINTS ====================


def parse_submission(
    payload: Mapping[str, Any], settings: LadderSettings | None = None
) -> ChallengeSubmission:
    """
    Validate the shape of a submission payload

    Returns:
        ChallengeSubmission: parsed submission

    Raises:
        ValidationError: if the payload is malformed or breaks a ladder limit
    """
    settings = settings or DEFAULT_SETTINGS
    if not isinstance(payload, Mapping):
        logger.warning(f"Challenge submission rejected: not a mapping ({type(payload).__name__})")
        raise ValidationError(
            f"challenge submission must be a mapping, got {type(payload).__name__}"
        )
    try:
        submission = ChallengeSubmission.model_validate(dict(payload))
    except pydantic.ValidationError as e:
        logger.warning(f"Challenge submission rejected: {e}")
        raise ValidationError(f"Invalid challenge submission: {e}", details=e.errors()) from e

    if submission.division not in settings.divisions:
        raise ValidationError(
            f"division must be one of {settings.divisions}, got {submission.division}"
        )
    if len(submission.participants) > settings.max_participants:
        raise ValidationError(
            f"participants cannot exceed {settings.max_participants} entries"
        )
    if submission.notes and len(submission.notes) > settings.notes_max_length:
        raise ValidationError(
            f"notes cannot exceed {settings.notes_max_length} characters"
        )
    return submission


def _validate_direct(submission: ChallengeSubmission) -> tuple[FinishEntry, ...]:
    ids = submission.player_ids
    if len(ids) != 2:
        raise ValidationError(f"a Direct challenge needs exactly 2 players, got {len(ids)}")
    if ids[0] == ids[1]:
        raise ValidationError("players must be different")
    winner = submission.winner_id
    if winner is None:
        raise ValidationError("a Direct challenge needs a winner_id")
    if winner not in ids:
        raise ValidationError(f"winner {winner} is not one of the two players")

    entries = []
    for p in submission.participants:
        expected = 1 if p.player_id == winner else 2
        if p.finish_position is not None and p.finish_position != expected:
            raise ValidationError(
                f"finish position of {p.player_id} disagrees with winner_id"
            )
        entries.append(FinishEntry(player_id=p.player_id, finish_position=expected))
    return tuple(sorted(entries, key=lambda e: e.finish_position))


def _validate_group(submission: ChallengeSubmission) -> tuple[FinishEntry, ...]:
    ids = submission.player_ids
    if len(ids) < 2:
        raise ValidationError(f"a Group challenge needs at least 2 players, got {len(ids)}")
    check_distinct_players(ids)
    check_finish_order([p.finish_position for p in submission.participants])

    entries = sorted(
        (FinishEntry(player_id=p.player_id, finish_position=p.finish_position) for p in submission.participants),
        key=lambda e: e.finish_position,
    )
    if submission.winner_id is not None and submission.winner_id != entries[0].player_id:
        raise ValidationError(
            f"winner {submission.winner_id} did not finish first"
        )
    return tuple(entries)


def validate_challenge(submission: ChallengeSubmission) -> tuple[FinishEntry, ...]:
    """
    Check the Direct/Group contract of a parsed submission

    Returns:
        Finish entries ordered by finish position (Direct: winner 1, loser 2)

    Raises:
        ValidationError: wrong participant count, duplicate ids, bad winner
        OrderingError: Group finish positions not a dense 1..N permutation
    """
    if submission.challenge_type == "Direct":
        return _validate_direct(submission)
    return _validate_group(submission)


def check_registry(
    submission: ChallengeSubmission, players: Mapping[str, Player]
) -> tuple[Player, ...]:
    """
    Resolve every participant against the registry

    Raises:
        ValidationError: unknown, inactive, or out-of-division participant
    """
    resolved: list[Player] = []
    for pid in submission.player_ids:
        player = players.get(pid)
        if player is None:
            raise ValidationError(f"unknown player: {pid}", details={"player_id": pid})
        if not player.is_active:
            raise ValidationError(f"player {pid} is not active", details={"player_id": pid})
        if player.division != submission.division:
            raise ValidationError(
                f"player {pid} plays in {player.division}, not {submission.division}",
                details={"player_id": pid},
            )
        resolved.append(player)
    return tuple(resolved)


# ==================== EXPORT ====================

__all__ = [
    "ParticipantEntry",
    "ChallengeSubmission",
    "InputSanitizer",
    "parse_submission",
    "validate_challenge",
    "check_registry",
]
