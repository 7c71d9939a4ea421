from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from flightdeck.schemas.question import DISCLAIMER_ID, Question
from flightdeck.schemas.test import TestContent, TestMetadata, resolve_questions


@dataclass(frozen=True)
class GradeResult:
    passed: bool
    score_percent: float
    correct: int
    total: int
    language: str
    per_question: dict[str, bool | None] = field(default_factory=dict)


def evaluate_answers(questions: Iterable[Question], answers: Mapping[str, Any]) -> dict[str, bool | None]:
    """Per-question verdicts; free-text questions map to None, display-only items are left out."""
    return {
        q.id: q.is_answer_correct(answers.get(q.id))
        for q in questions
        if q.id != DISCLAIMER_ID and not q.is_display_only
    }


def grade(
    test: TestMetadata,
    content: TestContent,
    answers: Mapping[str, Any],
    language: str | None = None,
) -> GradeResult:
    """Score `answers` against the question list resolved for `language`.

    Only auto-gradable questions count toward the score. With nothing to grade
    the score is 100, so a test of only free-text questions passes any threshold.
    """
    lang, questions = resolve_questions(content, language)
    per_question = evaluate_answers(questions, answers)

    verdicts = [v for v in per_question.values() if v is not None]
    total = len(verdicts)
    correct = sum(1 for v in verdicts if v)
    score = 100.0 if total == 0 else 100.0 * correct / total

    return GradeResult(
        passed=score >= test.pass_threshold,
        score_percent=score,
        correct=correct,
        total=total,
        language=lang,
        per_question=per_question,
    )
