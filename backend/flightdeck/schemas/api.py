from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from flightdeck.schemas.trigger import TestTrigger


class QuestionPublic(BaseModel):
    id: str
    kind: str
    text: str
    image_url: str | None = None
    options: list[str] = []
    right_items: list[str] = []


class TestSummary(BaseModel):
    id: str
    name: str
    bucket: str
    pass_threshold: int
    retry_delay_days: int
    triggers: list[str] = []
    passed: bool | None = None
    score_percent: float | None = None
    attempt_count: int = 0
    reviewed_once: bool = False
    can_retry_now: bool = True
    days_until_retry: int = 0


class TestsOverviewResponse(BaseModel):
    passed: list[TestSummary]
    failed: list[TestSummary]
    unlocked: list[TestSummary]
    locked: list[TestSummary]


class TestDetailResponse(BaseModel):
    id: str
    name: str
    language: str
    pass_threshold: int
    retry_delay_days: int
    attempt_no: int
    disclaimer: str | None = None
    questions: list[QuestionPublic]


class SubmitRequest(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    lang: str | None = None
    school_id: str | None = None


class AttemptOut(BaseModel):
    attempt_no: int
    submitted_at: datetime
    score_percent: float
    passed: bool


class SubmitResponse(BaseModel):
    test_id: str
    passed: bool
    score_percent: float
    correct: int
    total: int
    language: str
    per_question: dict[str, bool | None]
    attempts: list[AttemptOut]
    retry_available_at: datetime | None = None


class SubmissionResponse(BaseModel):
    test_id: str
    status: str
    passed: bool | None
    score_percent: float | None
    reviewed_once: bool
    can_retry_now: bool
    days_until_retry: int
    retry_available_at: datetime | None = None
    acknowledged_at: datetime | None = None
    attempts: list[AttemptOut]


class ReviewResponse(BaseModel):
    test_id: str
    mode: str
    language: str
    show_correct_answers: bool
    days_until_retry: int
    answers: dict[str, Any]
    per_question: dict[str, bool | None]
    correct_answers: dict[str, Any]


class StatsResponse(BaseModel):
    user_id: str
    stats: dict[str, float]


class TestDefinitionIn(BaseModel):
    names: dict[str, str] = Field(default_factory=dict)
    folder: str = ""
    json_file: str = ""
    content_url: str | None = None
    pass_threshold: int | None = Field(default=None, ge=0, le=100)
    retry_delay_days: int | None = Field(default=None, ge=0)
    triggers: list[TestTrigger] = Field(default_factory=list)
    is_active: bool = True


class SchoolResultOut(BaseModel):
    school_id: str
    user_id: str
    test_id: str
    passed: bool
    score_percent: float
    attempt_count: int
    submitted_at: datetime | None = None
