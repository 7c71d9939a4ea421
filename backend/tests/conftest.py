import json
import os
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from flightdeck.core.config import settings
from flightdeck.db.base import Base
from flightdeck.db import session as session_module

# Import models so that they are registered in Base.metadata before create_all.
import flightdeck.models  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and self._get_entry(key) is not None:
            return None
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        self._data.pop(key, None)
        return 1

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def clear(self):
        self._data.clear()


# Configure test DB (SQLite in-memory) at import time so every module that
# reaches session_module.SessionLocal gets the patched factory.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (locks, request cache, rate limiting, health).
_mem_redis = _MemoryRedis()
import flightdeck.core.redis_client as redis_client_module
import flightdeck.core.locks as locks_module
import flightdeck.core.request_cache as request_cache_module
import flightdeck.core.rate_limit as rate_limit_module
import flightdeck.routers.health as health_router_module

for _module in (redis_client_module, locks_module, request_cache_module, rate_limit_module, health_router_module):
    _module.get_redis = lambda: _mem_redis

from flightdeck.core.security import UserRole
from flightdeck.main import create_app


def create_access_token(user_id: str, *, role: UserRole = UserRole.student, school_id: str | None = None, minutes: int = 60) -> str:
    """Mint a token shaped like the ones the auth backend issues."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    if school_id:
        payload["school_id"] = school_id
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture(autouse=True)
def _clean_state():
    _mem_redis.clear()
    yield
    with session_module.SessionLocal() as db:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()


@pytest.fixture()
def mem_redis():
    return _mem_redis


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture(scope="session")
def client():
    app = create_app()

    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture()
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture()
def instructor_headers():
    token = create_access_token(f"instr_{uuid.uuid4().hex[:8]}", role=UserRole.instructor)
    return {"Authorization": f"Bearer {token}"}


SAMPLE_CONTENT = {
    "en": [
        {"id": "disclaimer", "type": "text", "text": "Answer on your own."},
        {
            "id": "q1",
            "type": "single_choice",
            "text": "Which cloud brings thermals?",
            "options": ["Stratus", "Cumulus", "Cirrus"],
            "correctAnswer": 1,
        },
        {
            "id": "q2",
            "type": "multiple_choice",
            "text": "Pick the checks before launch.",
            "options": ["Lines", "Buckles", "Snacks"],
            "correctAnswer": [0, 1],
        },
        {"id": "q3", "type": "true_false", "text": "Rotor is dangerous.", "correctAnswer": True},
        {"id": "q4", "type": "text", "text": "Describe a landing.", "correctAnswer": "Into the wind"},
        {
            "id": "q5",
            "type": "matching",
            "text": "Match the terms.",
            "matchingPairs": [{"left": "Cloud", "right": "Cumulus"}, {"left": "Wind", "right": "Thermal"}],
        },
    ],
    "de": [
        {
            "id": "q1",
            "type": "single_choice",
            "text": "Welche Wolke bringt Thermik?",
            "options": ["Stratus", "Cumulus", "Cirrus"],
            "correctAnswer": 1,
        },
    ],
}

CORRECT_ANSWERS = {
    "q1": "Cumulus",
    "q2": ["Lines", "Buckles"],
    "q3": True,
    "q4": "Into the wind",
    "q5": {"Cloud": "Cumulus", "Wind": "Thermal"},
}


@pytest.fixture()
def content_dir(tmp_path, monkeypatch):
    folder = tmp_path / "basics"
    folder.mkdir()
    (folder / "questions.json").write_text(json.dumps(SAMPLE_CONTENT), encoding="utf-8")
    monkeypatch.setattr(settings, "content_dir", str(tmp_path))
    return tmp_path
