from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from flightdeck.schemas.submission import TestSubmission
from flightdeck.schemas.test import TestMetadata
from flightdeck.schemas.trigger import StatsSnapshot


class Bucket(str, enum.Enum):
    passed = "passed"
    failed = "failed"
    unlocked = "unlocked"
    locked = "locked"


@dataclass
class Availability:
    passed: list[TestMetadata] = field(default_factory=list)
    failed: list[TestMetadata] = field(default_factory=list)
    unlocked: list[TestMetadata] = field(default_factory=list)
    locked: list[TestMetadata] = field(default_factory=list)

    def bucket(self, name: Bucket) -> list[TestMetadata]:
        return getattr(self, name.value)

    def bucket_of(self, test_id: str) -> Bucket | None:
        for name in Bucket:
            if any(t.id == test_id for t in self.bucket(name)):
                return name
        return None


def classify_test(test: TestMetadata, submission: TestSubmission | None, stats: StatsSnapshot) -> Bucket:
    # Submission state wins over triggers: a passed test stays passed if stats regress.
    if submission is not None and submission.passed is True:
        return Bucket.passed
    if submission is not None and submission.passed is False:
        return Bucket.failed
    if not test.are_triggers_met(stats):
        return Bucket.locked
    return Bucket.unlocked


def classify(
    tests: Iterable[TestMetadata],
    submissions: Mapping[str, TestSubmission],
    stats: StatsSnapshot,
) -> Availability:
    """Partition the catalog for one user against one statistics snapshot."""
    result = Availability()
    for test in tests:
        result.bucket(classify_test(test, submissions.get(test.id), stats)).append(test)
    return result
