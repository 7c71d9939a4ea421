from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from flightdeck.core.config import settings
from flightdeck.core.errors import ContentLoadError
from flightdeck.core.request_cache import cached_json
from flightdeck.schemas.test import TestContent, TestMetadata

log = logging.getLogger(__name__)


def _direct_url(url: str) -> str:
    # Storage download links serve metadata unless asked for the object itself.
    if "firebasestorage.googleapis.com" in url and "alt=media" not in url:
        return f"{url}{'&' if '?' in url else '?'}alt=media"
    return url


def _fetch_url(url: str) -> Any:
    target = _direct_url(url)
    try:
        with httpx.Client(timeout=settings.content_timeout_seconds, follow_redirects=True) as client:
            resp = client.get(target)
    except httpx.HTTPError as e:
        raise ContentLoadError(f"request failed: {e}", reason="network") from e

    if resp.status_code == 404:
        raise ContentLoadError("test content not found", reason="not_found")
    if resp.status_code != 200:
        raise ContentLoadError(f"content server returned HTTP {resp.status_code}", reason="network")

    try:
        return resp.json()
    except ValueError as e:
        raise ContentLoadError("test content is not valid JSON", reason="invalid") from e


def _read_local(test: TestMetadata) -> Any:
    if not test.json_file:
        raise ContentLoadError(f"test {test.id} has no content reference", reason="not_found")

    path = Path(settings.content_dir) / test.folder / test.json_file
    if not path.is_file():
        raise ContentLoadError(f"content file missing for test {test.id}", reason="not_found")

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ContentLoadError(f"content file unreadable for test {test.id}", reason="invalid") from e


def fetch_raw_content(test: TestMetadata) -> Any:
    if test.content_url and test.content_url.startswith(("http://", "https://")):
        return _fetch_url(test.content_url)
    return _read_local(test)


def parse_content(raw: Any, test: TestMetadata) -> TestContent:
    if not isinstance(raw, dict):
        raise ContentLoadError(f"content for test {test.id} must be a JSON object", reason="invalid")
    try:
        return TestContent.from_json(raw, asset_base_path=test.asset_base_path)
    except (ValidationError, ValueError, TypeError) as e:
        raise ContentLoadError(f"content for test {test.id} is malformed: {e}", reason="invalid") from e


def load_test_content(test: TestMetadata) -> TestContent:
    """Load and parse the question content for `test`.

    Raw JSON is cached per test id once it has parsed cleanly.
    """
    parsed: dict[str, TestContent] = {}

    def _load() -> Any:
        raw = fetch_raw_content(test)
        parsed["content"] = parse_content(raw, test)
        return raw

    try:
        raw = cached_json("test_content", test.id, ttl_seconds=settings.content_cache_seconds, loader=_load)
    except ContentLoadError as e:
        log.warning("content load failed test=%s reason=%s: %s", test.id, e.reason, e.message)
        raise

    return parsed.get("content") or parse_content(raw, test)
