"""Challenge submission flow: validate -> reconcile -> commit.

The engine is pure, so a commit that loses a race (StaleTagError) is handled by
re-reading the participants' tags, recomputing and resubmitting the whole unit.
Nothing is ever resumed partway.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from .config import DEFAULT_SETTINGS, LadderSettings
from .errors import StaleTagError
from .gateway import ChallengeCommit, PersistenceGateway
from .ledger import HistoryEntry, build_history_entries
from .models import ChallengeRecord, ParticipantRecord, Player, SubmissionContext
from .reconcile import FinishEntry, ReconciliationResult, reconcile_tags
from .validation import ChallengeSubmission, check_registry, parse_submission, validate_challenge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeReceipt:
    """What was committed for one submission."""

    challenge: ChallengeRecord
    participants: tuple[ParticipantRecord, ...]
    result: ReconciliationResult
    history: tuple[HistoryEntry, ...]
    attempts: int


def _compute(
    submission: ChallengeSubmission,
    entries: tuple[FinishEntry, ...],
    players: Mapping[str, Player],
    settings: LadderSettings,
) -> tuple[ReconciliationResult, dict[str, int | None]]:
    resolved = check_registry(submission, players)
    current_tags = {p.player_id: p.tag for p in resolved}
    result = reconcile_tags(entries, current_tags, untagged_policy=settings.untagged_policy)
    return result, current_tags


def preview_challenge(
    payload: Mapping[str, Any],
    players: Iterable[Player],
    settings: LadderSettings | None = None,
) -> ReconciliationResult:
    """Validate and compute the tag outcome without committing anything."""
    settings = settings or DEFAULT_SETTINGS
    submission = parse_submission(payload, settings)
    entries = validate_challenge(submission)
    result, _ = _compute(submission, entries, {p.player_id: p for p in players}, settings)
    return result


def _build_commit(
    challenge: ChallengeRecord,
    result: ReconciliationResult,
    current_tags: dict[str, int | None],
    recorded_at: datetime,
) -> ChallengeCommit:
    participants = tuple(
        ParticipantRecord(
            challenge_id=challenge.challenge_id,
            player_id=p.player_id,
            finish_position=p.finish_position,
            tag_before=p.tag_before,
            tag_after=p.tag_after,
        )
        for p in result.participants
    )
    return ChallengeCommit(
        challenge=challenge,
        participants=participants,
        changes=result.changes,
        history=build_history_entries(challenge.challenge_id, result.changes, recorded_at),
        expected_tags=dict(current_tags),
    )


def submit_challenge(
    payload: Mapping[str, Any],
    gateway: PersistenceGateway,
    *,
    context: SubmissionContext | None = None,
    settings: LadderSettings | None = None,
    clock: Callable[[], datetime] | None = None,
    id_factory: Callable[[], str] | None = None,
) -> ChallengeReceipt:
    """
    Record a challenge outcome and move the participants' tags.

    Args:
      payload: submission dict (challenge_type, division, date, notes, participants, winner_id).
      gateway: registry reads and the atomic commit.
      context: who is recording the challenge.
      settings: ladder settings; DEFAULT_SETTINGS when omitted.
      clock: timestamp source for history rows (UTC now by default).
      id_factory: challenge id source (uuid4 by default).

    Raises:
      ValidationError, OrderingError, UntaggedParticipantError: before anything is written.
      StaleTagError: tags kept moving for every attempt.
      PersistenceError: any other gateway failure, surfaced verbatim.
    """
    settings = settings or DEFAULT_SETTINGS
    context = context or SubmissionContext()
    submission = parse_submission(payload, settings)
    entries = validate_challenge(submission)

    challenge = ChallengeRecord(
        challenge_id=(id_factory or (lambda: str(uuid.uuid4())))(),
        challenge_type=submission.challenge_type,
        division=submission.division,
        challenge_date=submission.date,
        notes=submission.notes,
        recorded_by=context.recorded_by,
    )
    recorded_at = (clock or (lambda: datetime.now(timezone.utc)))()

    attempt = 0
    while True:
        attempt += 1
        players = gateway.load_players(submission.player_ids)
        result, current_tags = _compute(submission, entries, players, settings)
        commit = _build_commit(challenge, result, current_tags, recorded_at)
        try:
            gateway.commit(commit)
        except StaleTagError as e:
            if attempt >= settings.max_commit_attempts:
                logger.warning(
                    f"Giving up on challenge {challenge.challenge_id} after {attempt} attempts: {e}"
                )
                raise
            logger.warning(
                f"Challenge {challenge.challenge_id} hit stale tags ({e}), recomputing"
            )
            continue

        logger.info(
            f"Recorded {challenge.challenge_type} challenge {challenge.challenge_id} "
            f"({challenge.division}), {len(result.changes)} tag changes"
        )
        return ChallengeReceipt(
            challenge=challenge,
            participants=commit.participants,
            result=result,
            history=commit.history,
            attempts=attempt,
        )


__all__ = ["ChallengeReceipt", "preview_challenge", "submit_challenge"]
