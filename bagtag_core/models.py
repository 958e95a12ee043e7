"""Registry and challenge records."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from .errors import ValidationError
from .types import ChallengeType, PlayerStatus


@dataclass(frozen=True)
class Player:
    player_id: str
    name: str
    division: str
    status: PlayerStatus = "Active"
    tag: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "Active"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Player":
        """Build a Player from a registry row (player_id, player_name, player_division, player_status, bag_tag)."""
        try:
            player_id = row["player_id"]
        except KeyError:
            raise ValidationError("registry row missing player_id", details=dict(row))
        tag = row.get("bag_tag")
        if tag in (None, ""):
            tag = None
        elif isinstance(tag, bool) or not isinstance(tag, int) or tag < 1:
            raise ValidationError(
                f"player {player_id} has an invalid bag_tag: {tag!r}", details=dict(row)
            )
        return cls(
            player_id=str(player_id),
            name=str(row.get("player_name") or ""),
            division=str(row.get("player_division") or ""),
            status="Inactive" if row.get("player_status") == "Inactive" else "Active",
            tag=tag,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "player_name": self.name,
            "player_division": self.division,
            "player_status": self.status,
            "bag_tag": self.tag,
        }


@dataclass(frozen=True)
class SubmissionContext:
    """Who is recording the challenge; passed explicitly into handlers."""

    recorded_by: str | None = None


@dataclass(frozen=True)
class ChallengeRecord:
    challenge_id: str
    challenge_type: ChallengeType
    division: str
    challenge_date: datetime
    notes: str | None = None
    recorded_by: str | None = None


@dataclass(frozen=True)
class ParticipantRecord:
    challenge_id: str
    player_id: str
    finish_position: int
    tag_before: int | None
    tag_after: int | None

    @property
    def changed(self) -> bool:
        return self.tag_before != self.tag_after


__all__ = ["Player", "SubmissionContext", "ChallengeRecord", "ParticipantRecord"]
