from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flightdeck.schemas.submission import TestSubmission
from flightdeck.schemas.test import TestContent, resolve_questions
from flightdeck.services.grading import evaluate_answers


class ReviewMode(str, enum.Enum):
    new = "new"
    passed = "passed"
    first_review = "first_review"
    locked = "locked"
    retry = "retry"


@dataclass(frozen=True)
class ReviewView:
    mode: ReviewMode
    language: str
    show_correct_answers: bool = False
    answers: dict[str, Any] = field(default_factory=dict)
    per_question: dict[str, bool | None] = field(default_factory=dict)
    correct_answers: dict[str, Any] = field(default_factory=dict)
    days_until_retry: int = 0

    @property
    def marks_reviewed(self) -> bool:
        return self.mode is ReviewMode.first_review


def review_submission(
    submission: TestSubmission | None,
    content: TestContent,
    language: str | None = None,
    now: datetime | None = None,
) -> ReviewView:
    """Decide what a returning test-taker may see of their graded answers.

    Passed tests are always reviewable with correct answers. A failed attempt
    shows correct answers exactly once; after that, until the retry window
    opens, verdicts stay visible but correct answers do not.
    """
    lang, questions = resolve_questions(content, language)

    if submission is None or submission.passed is None:
        return ReviewView(mode=ReviewMode.new, language=lang)

    if submission.passed is False and submission.reviewed_once and submission.can_retry_now(now):
        return ReviewView(mode=ReviewMode.retry, language=lang)

    answers = dict(submission.answers)
    per_question = evaluate_answers(questions, answers)

    if submission.passed is True:
        mode = ReviewMode.passed
    elif not submission.reviewed_once:
        mode = ReviewMode.first_review
    else:
        mode = ReviewMode.locked

    show = mode is not ReviewMode.locked
    return ReviewView(
        mode=mode,
        language=lang,
        show_correct_answers=show,
        answers=answers,
        per_question=per_question,
        correct_answers={q.id: q.correct_answer() for q in questions if not q.is_display_only} if show else {},
        days_until_retry=submission.days_until_retry(now),
    )
