from datetime import datetime, timezone

from flightdeck.schemas.submission import Attempt, SubmissionStatus, TestSubmission
from flightdeck.schemas.test import TestMetadata
from flightdeck.schemas.trigger import TestTrigger
from flightdeck.services.availability import Bucket, classify, classify_test

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _sub(test_id, passed):
    return TestSubmission(
        user_id="u",
        test_id=test_id,
        attempts=[Attempt(attempt_no=1, submitted_at=NOW, score_percent=90.0 if passed else 10.0, passed=passed)],
        passed=passed,
        status=SubmissionStatus.final,
    )


def _gated(test_id, flights):
    return TestMetadata(id=test_id, triggers=[TestTrigger(type="flights_count", value=flights)])


def test_partition_is_disjoint_and_complete():
    tests = [_gated("a", 0), _gated("b", 0), _gated("c", 100), _gated("d", 5)]
    subs = {"a": _sub("a", True), "b": _sub("b", False)}

    result = classify(tests, subs, {"flightsCount": 10})

    assert [t.id for t in result.passed] == ["a"]
    assert [t.id for t in result.failed] == ["b"]
    assert [t.id for t in result.locked] == ["c"]
    assert [t.id for t in result.unlocked] == ["d"]

    ids = [t.id for name in Bucket for t in result.bucket(name)]
    assert sorted(ids) == ["a", "b", "c", "d"]


def test_passed_stays_passed_when_stats_regress():
    test = _gated("a", 100)
    assert classify_test(test, _sub("a", True), {"flightsCount": 0}) is Bucket.passed


def test_failed_beats_locked():
    test = _gated("a", 100)
    assert classify_test(test, _sub("a", False), {}) is Bucket.failed


def test_untaken_submission_follows_triggers():
    untaken = TestSubmission(user_id="u", test_id="a")
    assert classify_test(_gated("a", 1), untaken, {}) is Bucket.locked
    assert classify_test(TestMetadata(id="a"), untaken, {}) is Bucket.unlocked


def test_bucket_of():
    result = classify([_gated("a", 0), _gated("c", 100)], {}, {})
    assert result.bucket_of("a") is Bucket.unlocked
    assert result.bucket_of("c") is Bucket.locked
    assert result.bucket_of("zzz") is None


def test_empty_catalog():
    result = classify([], {}, {})
    assert all(result.bucket(name) == [] for name in Bucket)
