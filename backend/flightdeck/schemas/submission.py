from __future__ import annotations

import enum
import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; everything we store is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionStatus(str, enum.Enum):
    in_progress = "in_progress"
    final = "final"
    acknowledged = "acknowledged"


class Attempt(BaseModel):
    attempt_no: int
    submitted_at: datetime
    score_percent: float
    passed: bool
    answers: dict[str, Any] = Field(default_factory=dict)
    correct: int = 0
    total: int = 0
    language: str | None = None
    # Set once the test-taker has seen correct answers for this attempt.
    reviewed: bool = False


class TestSubmission(BaseModel):
    """All attempts of one user at one test."""

    user_id: str
    test_id: str
    answers: dict[str, Any] = Field(default_factory=dict)
    attempts: list[Attempt] = Field(default_factory=list)
    passed: bool | None = None
    status: SubmissionStatus = SubmissionStatus.in_progress
    retry_available_at: datetime | None = None
    acknowledged_at: datetime | None = None

    @property
    def last_attempt(self) -> Attempt | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def score_percent(self) -> float | None:
        last = self.last_attempt
        return last.score_percent if last else None

    @property
    def reviewed_once(self) -> bool:
        """Whether the latest attempt has been reviewed.

        Each attempt keeps its own flag and that flag never reverts; a new
        attempt starts unreviewed, so this reads False again after a retry.
        """
        last = self.last_attempt
        return bool(last and last.reviewed)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def can_retry_now(self, now: datetime | None = None) -> bool:
        if self.passed is not False or self.retry_available_at is None:
            return True
        return as_utc(now or utcnow()) >= as_utc(self.retry_available_at)

    def days_until_retry(self, now: datetime | None = None) -> int:
        now = as_utc(now or utcnow())
        if self.can_retry_now(now):
            return 0
        remaining = (as_utc(self.retry_available_at) - now).total_seconds() / 86400
        return max(0, math.ceil(remaining))
