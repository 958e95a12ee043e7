from .challenge import ChallengeReceipt, preview_challenge, submit_challenge
from .config import DEFAULT_SETTINGS, LadderSettings
from .errors import (
    LadderError,
    OrderingError,
    PersistenceError,
    StaleTagError,
    UntaggedParticipantError,
    ValidationError,
)
from .gateway import ChallengeCommit, InMemoryGateway, PersistenceGateway
from .ladder import build_leaderboard, find_duplicate_tags, leaderboard_by_division
from .ledger import HistoryEntry, InMemoryLedger, build_history_entries
from .models import ChallengeRecord, ParticipantRecord, Player, SubmissionContext
from .reconcile import (
    FinishEntry,
    ParticipantOutcome,
    ReconciliationResult,
    TagChange,
    check_distinct_players,
    check_finish_order,
    reconcile_tags,
)
from .types import DIVISIONS, PlayerRow, ReconciliationPayload, SubmissionPayload
from .validation import (
    ChallengeSubmission,
    InputSanitizer,
    ParticipantEntry,
    check_registry,
    parse_submission,
    validate_challenge,
)

__all__ = [
    "ChallengeReceipt",
    "preview_challenge",
    "submit_challenge",
    "DEFAULT_SETTINGS",
    "LadderSettings",
    "LadderError",
    "OrderingError",
    "PersistenceError",
    "StaleTagError",
    "UntaggedParticipantError",
    "ValidationError",
    "ChallengeCommit",
    "InMemoryGateway",
    "PersistenceGateway",
    "build_leaderboard",
    "find_duplicate_tags",
    "leaderboard_by_division",
    "HistoryEntry",
    "InMemoryLedger",
    "build_history_entries",
    "ChallengeRecord",
    "ParticipantRecord",
    "Player",
    "SubmissionContext",
    "FinishEntry",
    "ParticipantOutcome",
    "ReconciliationResult",
    "TagChange",
    "check_distinct_players",
    "check_finish_order",
    "reconcile_tags",
    "DIVISIONS",
    "PlayerRow",
    "ReconciliationPayload",
    "SubmissionPayload",
    "ChallengeSubmission",
    "InputSanitizer",
    "ParticipantEntry",
    "check_registry",
    "parse_submission",
    "validate_challenge",
]
