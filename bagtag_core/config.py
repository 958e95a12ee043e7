"""Ladder settings."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError
from .types import DIVISIONS, UntaggedPolicy

logger = logging.getLogger(__name__)


class LadderSettings(BaseModel):
    """Tunables for validation, reconciliation and commit retries."""

    divisions: tuple[str, ...] = Field(DIVISIONS, min_length=1)
    untagged_policy: UntaggedPolicy = "reject"
    max_participants: int = Field(64, ge=2, le=1000)
    notes_max_length: int = Field(1000, ge=0, le=10000)
    max_commit_attempts: int = Field(3, ge=1, le=20)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("divisions")
    @classmethod
    def validate_divisions(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [d for d in v if d not in DIVISIONS]
        if unknown:
            raise ValueError(f"divisions must be a subset of {DIVISIONS}, got {unknown}")
        if len(set(v)) != len(v):
            raise ValueError("divisions must not repeat")
        return v

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "LadderSettings":
        """Build settings from a plain dict; unknown keys are ignored."""
        try:
            return cls(**dict(values or {}))
        except pydantic.ValidationError as e:
            logger.warning(f"Invalid ladder settings: {e}")
            raise ValidationError(f"Invalid ladder settings: {e}", details=e.errors()) from e


DEFAULT_SETTINGS = LadderSettings()

__all__ = ["LadderSettings", "DEFAULT_SETTINGS"]
