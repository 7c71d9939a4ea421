from flightdeck.models.school_result import SchoolTestResult
from flightdeck.models.stats import UserStats
from flightdeck.models.submission import TestAttemptRecord, TestSubmissionRecord
from flightdeck.models.test_definition import TestDefinition

__all__ = [
    "SchoolTestResult",
    "TestAttemptRecord",
    "TestDefinition",
    "TestSubmissionRecord",
    "UserStats",
]
