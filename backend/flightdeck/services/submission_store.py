from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from flightdeck.core.errors import PersistenceError
from flightdeck.models.submission import TestAttemptRecord, TestSubmissionRecord
from flightdeck.schemas.submission import Attempt, SubmissionStatus, TestSubmission, as_utc, utcnow

log = logging.getLogger(__name__)


def _to_attempt(row: TestAttemptRecord) -> Attempt:
    return Attempt(
        attempt_no=row.attempt_no,
        submitted_at=as_utc(row.submitted_at),
        score_percent=row.score_percent,
        passed=row.passed,
        answers=dict(row.answers or {}),
        correct=row.correct,
        total=row.total,
        language=row.language,
        reviewed=row.reviewed,
    )


def _to_submission(row: TestSubmissionRecord) -> TestSubmission:
    return TestSubmission(
        user_id=row.user_id,
        test_id=row.test_id,
        answers=dict(row.answers or {}),
        attempts=[_to_attempt(a) for a in row.attempts],
        passed=row.passed,
        status=SubmissionStatus(row.status),
        retry_available_at=as_utc(row.retry_available_at) if row.retry_available_at else None,
        acknowledged_at=as_utc(row.student_acknowledged_at) if row.student_acknowledged_at else None,
    )


class SubmissionStore:
    """Submissions keyed by (user, test); one transaction per save."""

    def __init__(self, db: Session):
        self.db = db

    def _record(self, user_id: str, test_id: str) -> TestSubmissionRecord | None:
        return self.db.scalar(
            select(TestSubmissionRecord)
            .options(selectinload(TestSubmissionRecord.attempts))
            .where(TestSubmissionRecord.user_id == user_id, TestSubmissionRecord.test_id == test_id)
        )

    def get_submission(self, user_id: str, test_id: str) -> TestSubmission | None:
        row = self._record(user_id, test_id)
        return _to_submission(row) if row else None

    def list_submissions(self, user_id: str) -> dict[str, TestSubmission]:
        rows = self.db.scalars(
            select(TestSubmissionRecord)
            .options(selectinload(TestSubmissionRecord.attempts))
            .where(TestSubmissionRecord.user_id == user_id)
        ).all()
        return {r.test_id: _to_submission(r) for r in rows}

    def save_submission(self, user_id: str, test_id: str, submission: TestSubmission) -> None:
        try:
            row = self._record(user_id, test_id)
            if row is None:
                row = TestSubmissionRecord(user_id=user_id, test_id=test_id)
                self.db.add(row)

            stored = {a.attempt_no: a for a in row.attempts}
            if len(stored) > len(submission.attempts):
                raise PersistenceError("submission is stale: stored attempts would be dropped")

            row.answers = dict(submission.answers)
            row.passed = submission.passed
            row.status = submission.status.value
            row.retry_available_at = submission.retry_available_at
            row.student_acknowledged_at = submission.acknowledged_at
            row.updated_at = utcnow()

            for attempt in submission.attempts:
                existing = stored.get(attempt.attempt_no)
                if existing is not None:
                    # Attempts are append-only; only the review flag may move, and only forward.
                    existing.reviewed = existing.reviewed or attempt.reviewed
                    continue
                row.attempts.append(
                    TestAttemptRecord(
                        attempt_no=attempt.attempt_no,
                        submitted_at=attempt.submitted_at,
                        score_percent=attempt.score_percent,
                        passed=attempt.passed,
                        correct=attempt.correct,
                        total=attempt.total,
                        language=attempt.language,
                        answers=dict(attempt.answers),
                        reviewed=attempt.reviewed,
                    )
                )

            self.db.commit()
        except PersistenceError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("submission save failed user=%s test=%s", user_id, test_id, exc_info=True)
            raise PersistenceError("submission could not be saved") from e
