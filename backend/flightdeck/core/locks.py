from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from flightdeck.core.config import settings
from flightdeck.core.errors import SubmissionInProgressError
from flightdeck.core.redis_client import get_redis

log = logging.getLogger(__name__)


def submit_lock_key(user_id: str, test_id: str) -> str:
    return f"locks:submit:{user_id}:{test_id}"


@contextmanager
def submit_lock(user_id: str, test_id: str, *, ttl_seconds: int | None = None) -> Iterator[str]:
    """Hold the per-(user, test) submit lock for the duration of the block.

    A second caller for the same key is rejected instead of queued, so two taps
    on "submit" can never interleave attempt appends.
    """
    r = get_redis()
    key = submit_lock_key(user_id, test_id)
    token = uuid.uuid4().hex
    ttl = int(ttl_seconds or settings.submit_lock_seconds)

    acquired = r.set(key, token, nx=True, ex=max(1, ttl))
    if not acquired:
        log.warning("submit lock busy user=%s test=%s", user_id, test_id)
        raise SubmissionInProgressError("a submission for this test is already in progress")

    try:
        yield token
    finally:
        # Only the owner releases; an expired lock may already belong to someone else.
        if r.get(key) == token:
            r.delete(key)
