"""Attempt bookkeeping for (user, test) pairs.

A submission is created by the first graded attempt and then only grows: each
retry appends an attempt and moves `passed` and the retry window. A passed
test takes no further attempts; a failed one takes the next attempt once its
retry delay has elapsed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from flightdeck.core.errors import AlreadyPassedError, RetryNotAvailableError, TestLockedError
from flightdeck.core.locks import submit_lock
from flightdeck.schemas.submission import Attempt, SubmissionStatus, TestSubmission, as_utc, utcnow
from flightdeck.schemas.test import TestContent, TestMetadata
from flightdeck.schemas.trigger import StatsSnapshot
from flightdeck.services.grading import GradeResult, grade
from flightdeck.services.submission_store import SubmissionStore

log = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        # Mixed element types have no natural order.
        return sorted((_jsonable(v) for v in value), key=lambda v: (type(v).__name__, str(v)))
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class SubmitResult:
    grade: GradeResult
    submission: TestSubmission
    retry_available_at: datetime | None

    @property
    def passed(self) -> bool:
        return self.grade.passed

    @property
    def score_percent(self) -> float:
        return self.grade.score_percent

    @property
    def attempts(self) -> list[Attempt]:
        return self.submission.attempts


class SubmissionManager:
    def __init__(
        self,
        store: SubmissionStore,
        *,
        lock: Callable[[str, str], AbstractContextManager] = submit_lock,
    ):
        self.store = store
        self.lock = lock

    def submit_and_grade(
        self,
        user_id: str,
        test: TestMetadata,
        content: TestContent,
        answers: Mapping[str, Any],
        *,
        language: str | None = None,
        stats: StatsSnapshot | None = None,
        now: datetime | None = None,
    ) -> SubmitResult:
        """Grade `answers`, append the attempt, and persist it before returning.

        Raises AlreadyPassedError, RetryNotAvailableError or TestLockedError when
        policy forbids the attempt, SubmissionInProgressError when another submit
        for the same pair holds the lock, and PersistenceError when the write fails.
        """
        now = as_utc(now or utcnow())

        with self.lock(user_id, test.id):
            existing = self.store.get_submission(user_id, test.id)

            if existing is not None and existing.passed is True:
                raise AlreadyPassedError(f"test {test.id} already passed")
            if existing is not None and not existing.can_retry_now(now):
                raise RetryNotAvailableError(existing.retry_available_at, existing.days_until_retry(now))
            if (existing is None or not existing.attempts) and stats is not None and not test.are_triggers_met(stats):
                raise TestLockedError(f"test {test.id} is locked")

            result = grade(test, content, answers, language)
            submission = existing or TestSubmission(user_id=user_id, test_id=test.id)
            stored_answers = _jsonable(dict(answers))

            submission.attempts.append(
                Attempt(
                    attempt_no=submission.attempt_count + 1,
                    submitted_at=now,
                    score_percent=result.score_percent,
                    passed=result.passed,
                    answers=stored_answers,
                    correct=result.correct,
                    total=result.total,
                    language=result.language,
                )
            )
            submission.answers = stored_answers
            submission.passed = result.passed
            submission.status = SubmissionStatus.final
            submission.retry_available_at = None if result.passed else now + timedelta(days=test.retry_delay_days)
            # A new attempt needs its own sign-off.
            submission.acknowledged_at = None

            self.store.save_submission(user_id, test.id, submission)

        log.info(
            "test graded user=%s test=%s attempt=%s score=%.1f passed=%s",
            user_id,
            test.id,
            submission.attempt_count,
            result.score_percent,
            result.passed,
        )
        return SubmitResult(grade=result, submission=submission, retry_available_at=submission.retry_available_at)

    def mark_reviewed_once(self, user_id: str, test_id: str) -> TestSubmission | None:
        """Record that the latest attempt's correct answers were shown. Idempotent."""
        submission = self.store.get_submission(user_id, test_id)
        if submission is None or submission.last_attempt is None:
            return submission
        if submission.last_attempt.reviewed:
            return submission

        submission.last_attempt.reviewed = True
        self.store.save_submission(user_id, test_id, submission)
        log.info("review recorded user=%s test=%s attempt=%s", user_id, test_id, submission.attempt_count)
        return submission

    def acknowledge_review(self, user_id: str, test_id: str, *, now: datetime | None = None) -> TestSubmission | None:
        """Record the test-taker's sign-off on their graded result. Idempotent per attempt."""
        submission = self.store.get_submission(user_id, test_id)
        if submission is None or submission.last_attempt is None:
            return submission
        if submission.status is SubmissionStatus.acknowledged:
            return submission

        submission.status = SubmissionStatus.acknowledged
        submission.acknowledged_at = as_utc(now or utcnow())
        self.store.save_submission(user_id, test_id, submission)
        log.info("review acknowledged user=%s test=%s attempt=%s", user_id, test_id, submission.attempt_count)
        return submission
