import uuid

from conftest import CORRECT_ANSWERS, create_access_token
from flightdeck.core.security import UserRole
from flightdeck.db.session import SessionLocal
from flightdeck.models.school_result import SchoolTestResult


def _define_test(client, headers, test_id="basics", **overrides):
    body = {
        "names": {"en": "Basics", "de": "Grundlagen"},
        "folder": "basics",
        "json_file": "questions.json",
        "pass_threshold": 80,
        "retry_delay_days": 3,
        "triggers": [],
    }
    body.update(overrides)
    r = client.put(f"/admin/tests/{test_id}", json=body, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_requires_token(client):
    r = client.get("/tests")
    assert r.status_code == 401
    assert r.json()["ok"] is False
    assert r.json()["error_code"] == "unauthorized"


def test_admin_requires_instructor(client, auth_headers):
    r = client.put("/admin/tests/basics", json={}, headers=auth_headers)
    assert r.status_code == 403


def test_admin_upsert_applies_defaults(client, instructor_headers):
    body = _define_test(client, instructor_headers, pass_threshold=None, retry_delay_days=None)
    assert body["pass_threshold"] == 80
    assert body["retry_delay_days"] == 10


def test_overview_buckets(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers, "basics")
    _define_test(
        client,
        instructor_headers,
        "cross-country",
        triggers=[{"type": "flights_count", "operator": ">=", "value": 25}],
    )

    r = client.get("/tests", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert [t["id"] for t in data["unlocked"]] == ["basics"]
    assert [t["id"] for t in data["locked"]] == ["cross-country"]
    assert data["locked"][0]["triggers"] == ["Flights count >= 25"]

    r = client.put("/stats/me", json={"flightsCount": 30}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["stats"]["flightsCount"] == 30.0

    data = client.get("/tests", headers=auth_headers).json()
    assert sorted(t["id"] for t in data["unlocked"]) == ["basics", "cross-country"]


def test_get_test_hides_answers(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers)

    r = client.get("/tests/basics?lang=de", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["language"] == "de"
    assert data["name"] == "Grundlagen"
    assert data["attempt_no"] == 1

    r = client.get("/tests/basics", headers=auth_headers)
    data = r.json()
    assert data["disclaimer"] == "Answer on your own."
    matching = next(q for q in data["questions"] if q["id"] == "q5")
    assert sorted(matching["right_items"]) == ["Cumulus", "Thermal"]
    for q in data["questions"]:
        assert "correct_option_index" not in q
        assert "correct_pairs" not in q


def test_unknown_test_is_404(client, auth_headers):
    r = client.get("/tests/nope", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "test_not_found"


def test_submit_fail_review_and_retry_gate(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers)

    r = client.post("/tests/basics/submit", json={"answers": {"q1": "Stratus"}}, headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["passed"] is False
    assert data["total"] == 4
    assert data["correct"] == 0
    assert data["retry_available_at"] is not None
    assert len(data["attempts"]) == 1

    r = client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "retry_not_available"
    assert r.json()["days_until_retry"] == 3

    r = client.get("/tests/basics/review", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["mode"] == "first_review"
    assert r.json()["correct_answers"]["q1"] == "Cumulus"

    r = client.get("/tests/basics/review", headers=auth_headers)
    assert r.json()["mode"] == "locked"
    assert r.json()["correct_answers"] == {}

    r = client.get("/tests/basics/submission", headers=auth_headers)
    data = r.json()
    assert data["passed"] is False
    assert data["reviewed_once"] is True
    assert data["can_retry_now"] is False

    overview = client.get("/tests", headers=auth_headers).json()
    assert [t["id"] for t in overview["failed"]] == ["basics"]


def test_submit_pass_then_already_passed(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers)

    r = client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["passed"] is True
    assert r.json()["score_percent"] == 100.0
    assert r.json()["retry_available_at"] is None

    r = client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "already_passed"

    r = client.get("/tests/basics/review", headers=auth_headers)
    assert r.json()["mode"] == "passed"


def test_submit_locked_test_forbidden(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers, triggers=[{"type": "flights_count", "value": 5}])

    r = client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=auth_headers)
    assert r.status_code == 403
    assert r.json()["error_code"] == "test_locked"


def test_missing_content_surfaces_as_error(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers, json_file="absent.json")

    r = client.get("/tests/basics", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "content_unavailable"


def test_school_result_recorded(client, instructor_headers, content_dir):
    _define_test(client, instructor_headers)
    school_id = f"school_{uuid.uuid4().hex[:6]}"
    user_id = f"user_{uuid.uuid4().hex[:8]}"
    headers = {"Authorization": f"Bearer {create_access_token(user_id, school_id=school_id)}"}

    r = client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=headers)
    assert r.status_code == 200

    with SessionLocal() as db:
        row = db.get(SchoolTestResult, (school_id, user_id, "basics"))
        assert row is not None
        assert row.passed is True

    r = client.get(f"/admin/schools/{school_id}/results", headers=instructor_headers)
    assert r.status_code == 200
    assert [(x["user_id"], x["test_id"]) for x in r.json()] == [(user_id, "basics")]


def test_explicit_reviewed_endpoint(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers)

    r = client.post("/tests/basics/reviewed", headers=auth_headers)
    assert r.json() == {"ok": True, "reviewed_once": False}

    client.post("/tests/basics/submit", json={"answers": {}}, headers=auth_headers)
    r = client.post("/tests/basics/reviewed", headers=auth_headers)
    assert r.json() == {"ok": True, "reviewed_once": True}


def test_submit_rate_limited(client, instructor_headers, content_dir):
    _define_test(client, instructor_headers, "a")
    token = create_access_token(f"user_{uuid.uuid4().hex[:8]}", role=UserRole.student)
    headers = {"Authorization": f"Bearer {token}"}

    statuses = []
    for _ in range(25):
        statuses.append(client.post("/tests/a/submit", json={"answers": {}}, headers=headers).status_code)
    assert 429 in statuses


def test_acknowledge_endpoint(client, instructor_headers, auth_headers, content_dir):
    _define_test(client, instructor_headers)

    r = client.post("/tests/basics/acknowledge", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"
    assert r.json()["acknowledged_at"] is None

    client.post("/tests/basics/submit", json={"answers": CORRECT_ANSWERS}, headers=auth_headers)
    r = client.post("/tests/basics/acknowledge", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "acknowledged"
    assert r.json()["acknowledged_at"] is not None

    r = client.get("/tests/basics/submission", headers=auth_headers)
    assert r.json()["status"] == "acknowledged"
    assert r.json()["passed"] is True


def test_rejects_foreign_or_malformed_tokens(client):
    r = client.get("/tests", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    r = client.get("/tests", headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert r.status_code == 401
