from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from flightdeck.core.redis_client import get_redis

log = logging.getLogger(__name__)


def cache_key(operation: str, key: str) -> str:
    return f"cache:{operation}:{key}"


def cached_json(operation: str, key: str, *, ttl_seconds: int, loader: Callable[[], Any]) -> Any:
    """Return the cached JSON value for (operation, key), or call `loader` and cache it.

    Nothing is written unless `loader` returns normally, so an abandoned or
    failed load leaves the cache untouched. Redis outages degrade to a direct
    call.
    """
    full_key = cache_key(operation, key)
    r = None
    try:
        r = get_redis()
        raw = r.get(full_key)
        if raw is not None:
            return json.loads(raw)
    except Exception:
        log.warning("request cache read failed key=%s", full_key, exc_info=True)

    value = loader()

    if r is not None and ttl_seconds > 0:
        try:
            r.set(full_key, json.dumps(value, ensure_ascii=False), ex=int(ttl_seconds))
        except Exception:
            log.warning("request cache write failed key=%s", full_key, exc_info=True)
    return value


def invalidate(operation: str, key: str) -> None:
    try:
        get_redis().delete(cache_key(operation, key))
    except Exception:
        log.warning("request cache invalidate failed op=%s key=%s", operation, key, exc_info=True)
