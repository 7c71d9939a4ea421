from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from flightdeck.core.config import settings
from flightdeck.core.errors import PersistenceError
from flightdeck.core.rate_limit import rate_limit
from flightdeck.core.security import CurrentUser, get_current_user
from flightdeck.db.session import get_db
from flightdeck.schemas.api import (
    AttemptOut,
    QuestionPublic,
    ReviewResponse,
    SubmissionResponse,
    SubmitRequest,
    SubmitResponse,
    TestDetailResponse,
    TestsOverviewResponse,
    TestSummary,
)
from flightdeck.schemas.question import QuestionKind
from flightdeck.schemas.submission import TestSubmission
from flightdeck.schemas.test import TestMetadata, resolve_questions
from flightdeck.services.availability import Bucket, classify
from flightdeck.services.catalog import TestCatalog
from flightdeck.services.content import load_test_content
from flightdeck.services.review import review_submission
from flightdeck.services.school_results import save_school_result
from flightdeck.services.stats import StatsProvider
from flightdeck.services.submission_store import SubmissionStore
from flightdeck.services.submissions import SubmissionManager

router = APIRouter(prefix="/tests", tags=["tests"])

log = logging.getLogger(__name__)


def _attempts_out(submission: TestSubmission | None) -> list[AttemptOut]:
    if submission is None:
        return []
    return [
        AttemptOut(attempt_no=a.attempt_no, submitted_at=a.submitted_at, score_percent=a.score_percent, passed=a.passed)
        for a in submission.attempts
    ]


def _submission_out(test_id: str, submission: TestSubmission | None, user_id: str) -> SubmissionResponse:
    submission = submission or TestSubmission(user_id=user_id, test_id=test_id)
    return SubmissionResponse(
        test_id=test_id,
        status=submission.status.value,
        passed=submission.passed,
        score_percent=submission.score_percent,
        reviewed_once=submission.reviewed_once,
        can_retry_now=submission.can_retry_now(),
        days_until_retry=submission.days_until_retry(),
        retry_available_at=submission.retry_available_at,
        acknowledged_at=submission.acknowledged_at,
        attempts=_attempts_out(submission),
    )


def _summary(test: TestMetadata, bucket: Bucket, submission: TestSubmission | None, lang: str) -> TestSummary:
    return TestSummary(
        id=test.id,
        name=test.name(lang),
        bucket=bucket.value,
        pass_threshold=test.pass_threshold,
        retry_delay_days=test.retry_delay_days,
        triggers=[t.describe(lang) for t in test.triggers],
        passed=submission.passed if submission else None,
        score_percent=submission.score_percent if submission else None,
        attempt_count=submission.attempt_count if submission else 0,
        reviewed_once=submission.reviewed_once if submission else False,
        can_retry_now=submission.can_retry_now() if submission else True,
        days_until_retry=submission.days_until_retry() if submission else 0,
    )


@router.get("", response_model=TestsOverviewResponse)
def list_tests(
    lang: str = Query(default=settings.default_language),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    tests = TestCatalog(db).list_available_tests()
    submissions = SubmissionStore(db).list_submissions(user.id)
    # One snapshot for the whole pass.
    stats = StatsProvider(db).get_stats(user.id)

    availability = classify(tests, submissions, stats)
    return TestsOverviewResponse(
        **{
            bucket.value: [_summary(t, bucket, submissions.get(t.id), lang) for t in availability.bucket(bucket)]
            for bucket in Bucket
        }
    )


@router.get("/{test_id}", response_model=TestDetailResponse)
def get_test(
    test_id: str,
    lang: str = Query(default=settings.default_language),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    test = TestCatalog(db).get_test(test_id)
    content = load_test_content(test)
    submission = SubmissionStore(db).get_submission(user.id, test.id)
    attempt_no = (submission.attempt_count if submission else 0) + 1

    resolved, questions = resolve_questions(content, lang)
    public = []
    for q in questions:
        right_items = []
        if q.kind is QuestionKind.matching:
            right_items = q.shuffled_right_items(f"{user.id}:{test.id}:{q.id}:{attempt_no}")
        public.append(
            QuestionPublic(
                id=q.id,
                kind=q.kind.value,
                text=q.text,
                image_url=q.image_url,
                options=q.options,
                right_items=right_items,
            )
        )

    return TestDetailResponse(
        id=test.id,
        name=test.name(resolved),
        language=resolved,
        pass_threshold=test.pass_threshold,
        retry_delay_days=test.retry_delay_days,
        attempt_no=attempt_no,
        disclaimer=content.disclaimer,
        questions=public,
    )


@router.post("/{test_id}/submit", response_model=SubmitResponse)
def submit_test(
    test_id: str,
    body: SubmitRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    _: object = rate_limit(key_prefix="test_submit", limit=settings.submit_rate_limit_per_minute, window_seconds=60),
):
    test = TestCatalog(db).get_test(test_id)
    content = load_test_content(test)
    stats = StatsProvider(db).get_stats(user.id)

    manager = SubmissionManager(SubmissionStore(db))
    result = manager.submit_and_grade(user.id, test, content, body.answers, language=body.lang, stats=stats)

    school_id = body.school_id or user.school_id
    if school_id:
        try:
            save_school_result(db, school_id=school_id, user_id=user.id, test_id=test.id, result=result)
        except PersistenceError:
            # The attempt itself is already stored; the school summary is a derived copy.
            log.error("school result not saved school=%s user=%s test=%s", school_id, user.id, test.id, exc_info=True)

    return SubmitResponse(
        test_id=test.id,
        passed=result.passed,
        score_percent=result.score_percent,
        correct=result.grade.correct,
        total=result.grade.total,
        language=result.grade.language,
        per_question=result.grade.per_question,
        attempts=_attempts_out(result.submission),
        retry_available_at=result.retry_available_at,
    )


@router.get("/{test_id}/submission", response_model=SubmissionResponse)
def get_submission(
    test_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    test = TestCatalog(db).get_test(test_id)
    return _submission_out(test.id, SubmissionStore(db).get_submission(user.id, test.id), user.id)


@router.get("/{test_id}/review", response_model=ReviewResponse)
def review_test(
    test_id: str,
    lang: str = Query(default=settings.default_language),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    test = TestCatalog(db).get_test(test_id)
    content = load_test_content(test)
    store = SubmissionStore(db)

    view = review_submission(store.get_submission(user.id, test.id), content, lang)
    if view.marks_reviewed:
        SubmissionManager(store).mark_reviewed_once(user.id, test.id)

    return ReviewResponse(
        test_id=test.id,
        mode=view.mode.value,
        language=view.language,
        show_correct_answers=view.show_correct_answers,
        days_until_retry=view.days_until_retry,
        answers=view.answers,
        per_question=view.per_question,
        correct_answers=view.correct_answers,
    )


@router.post("/{test_id}/reviewed")
def mark_reviewed(
    test_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    test = TestCatalog(db).get_test(test_id)
    submission = SubmissionManager(SubmissionStore(db)).mark_reviewed_once(user.id, test.id)
    return {"ok": True, "reviewed_once": bool(submission and submission.reviewed_once)}


@router.post("/{test_id}/acknowledge", response_model=SubmissionResponse)
def acknowledge_review(
    test_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    test = TestCatalog(db).get_test(test_id)
    submission = SubmissionManager(SubmissionStore(db)).acknowledge_review(user.id, test.id)
    return _submission_out(test.id, submission, user.id)
