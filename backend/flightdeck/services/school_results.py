from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flightdeck.core.errors import PersistenceError
from flightdeck.models.school_result import SchoolTestResult
from flightdeck.services.submissions import SubmitResult

log = logging.getLogger(__name__)


def save_school_result(db: Session, *, school_id: str, user_id: str, test_id: str, result: SubmitResult) -> SchoolTestResult:
    """Keep one summary row per (school, user, test) so instructors need not scan every submission."""
    row = db.get(SchoolTestResult, (school_id, user_id, test_id))
    if row is None:
        row = SchoolTestResult(school_id=school_id, user_id=user_id, test_id=test_id)
        db.add(row)

    last = result.submission.last_attempt
    row.passed = result.passed
    row.score_percent = result.score_percent
    row.attempt_count = result.submission.attempt_count
    row.submitted_at = last.submitted_at if last else None

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("could not save school result") from e

    log.info("school result saved school=%s user=%s test=%s", school_id, user_id, test_id)
    return row


def list_school_results(db: Session, school_id: str) -> list[SchoolTestResult]:
    return list(
        db.scalars(
            select(SchoolTestResult)
            .where(SchoolTestResult.school_id == school_id)
            .order_by(SchoolTestResult.test_id, SchoolTestResult.user_id)
        ).all()
    )
