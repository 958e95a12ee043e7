"""Exceptions raised by the ladder core."""
from __future__ import annotations

from typing import Any, Sequence


class LadderError(Exception):
    """Base class for every error the core raises."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LadderError):
    """Malformed submission (participant count, duplicate ids, winner, registry)."""


class OrderingError(LadderError):
    """Finish positions are not a dense 1..N permutation."""


class UntaggedParticipantError(LadderError):
    """A participant holds no tag and the ladder rejects untagged participants."""

    def __init__(self, player_ids: Sequence[str]) -> None:
        self.player_ids = tuple(player_ids)
        super().__init__(
            f"participants without a bag tag: {', '.join(self.player_ids)}",
            details={"player_ids": list(self.player_ids)},
        )


class PersistenceError(LadderError):
    """The gateway could not apply a challenge commit."""


class StaleTagError(PersistenceError):
    # Tags changed between the read and the commit; recompute and resubmit.
    def __init__(self, player_ids: Sequence[str]) -> None:
        self.player_ids = tuple(player_ids)
        super().__init__(
            f"stale tags for: {', '.join(self.player_ids)}",
            details={"player_ids": list(self.player_ids)},
        )


__all__ = [
    "LadderError",
    "ValidationError",
    "OrderingError",
    "UntaggedParticipantError",
    "PersistenceError",
    "StaleTagError",
]
