"""Typed failures of the test engine.

Pure computations (grading, trigger evaluation) never raise these to callers;
they fail closed. I/O failures (content loads, submission writes) and policy
rejections surface as one of the classes below and are rendered by the app's
exception handler.
"""

from __future__ import annotations

from datetime import datetime


class FlightdeckError(Exception):
    error_code = "error"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.error_code)
        self.message = message or self.error_code


class ContentLoadError(FlightdeckError):
    error_code = "content_unavailable"
    status_code = 502

    def __init__(self, message: str | None = None, *, reason: str = "network"):
        super().__init__(message or f"test content unavailable ({reason})")
        self.reason = reason
        if reason == "not_found":
            self.status_code = 404


class GradingInputError(FlightdeckError):
    """Answer shape does not match the question kind. Never escapes grading."""

    error_code = "invalid_answer"


class PersistenceError(FlightdeckError):
    error_code = "persistence_failed"
    status_code = 503


class TestNotFoundError(FlightdeckError):
    error_code = "test_not_found"
    status_code = 404


class TestLockedError(FlightdeckError):
    error_code = "test_locked"
    status_code = 403


class SubmissionInProgressError(FlightdeckError):
    error_code = "submission_in_progress"
    status_code = 409


class AlreadyPassedError(FlightdeckError):
    error_code = "already_passed"
    status_code = 409


class RetryNotAvailableError(FlightdeckError):
    error_code = "retry_not_available"
    status_code = 409

    def __init__(self, retry_available_at: datetime | None, days_until_retry: int = 0):
        super().__init__(f"retry available in {days_until_retry} day(s)")
        self.retry_available_at = retry_available_at
        self.days_until_retry = days_until_retry
