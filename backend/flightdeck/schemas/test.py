"""Test catalog entries and their per-language question content."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, model_validator

from flightdeck.core.config import settings
from flightdeck.schemas.question import DISCLAIMER_ID, Question
from flightdeck.schemas.trigger import StatsSnapshot, TestTrigger, triggers_met


class TestMetadata(BaseModel):
    id: str
    names: dict[str, str] = Field(default_factory=dict)
    folder: str = ""
    json_file: str = ""
    content_url: str | None = None
    pass_threshold: int = Field(default_factory=lambda: settings.default_pass_threshold, ge=0, le=100)
    retry_delay_days: int = Field(default_factory=lambda: settings.default_retry_delay_days, ge=0)
    triggers: list[TestTrigger] = Field(default_factory=list)

    def name(self, lang: str) -> str:
        return self.names.get(lang) or self.names.get("en") or "Untitled Test"

    @property
    def asset_base_path(self) -> str:
        return f"assets/tests/{self.folder}" if self.folder else "assets/tests"

    def are_triggers_met(self, stats: StatsSnapshot) -> bool:
        return triggers_met(self.triggers, stats)

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "TestMetadata":
        """Parse one entry of a tests_config.json catalog file."""
        fields: dict[str, Any] = {
            "id": str(data.get("id") or ""),
            "names": {str(k): str(v) for k, v in (data.get("name") or {}).items()},
            "folder": str(data.get("folder") or ""),
            "json_file": str(data.get("jsonFile") or ""),
            "content_url": data.get("testUrl") or data.get("contentUrl") or None,
            "triggers": [TestTrigger(**t) for t in data.get("triggers") or [] if isinstance(t, Mapping)],
        }
        if data.get("passThreshold") is not None:
            fields["pass_threshold"] = data["passThreshold"]
        if data.get("retryDelayDays") is not None:
            fields["retry_delay_days"] = data["retryDelayDays"]
        return cls(**fields)


class TestContent(BaseModel):
    questions: dict[str, list[Question]]
    disclaimer: str | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _require_language(self) -> "TestContent":
        if not self.questions:
            raise ValueError("test content has no language")
        return self

    @property
    def languages(self) -> list[str]:
        return list(self.questions)

    @classmethod
    def from_json(cls, data: Mapping[str, Any], *, asset_base_path: str | None = None) -> "TestContent":
        """Every top-level list is a language; the `disclaimer` entry becomes the disclaimer text."""
        questions: dict[str, list[Question]] = {}
        disclaimer: str | None = None

        for lang, items in data.items():
            if not isinstance(items, list):
                continue
            parsed: list[Question] = []
            for item in items:
                if not isinstance(item, Mapping):
                    continue
                if item.get("id") == DISCLAIMER_ID:
                    if disclaimer is None:
                        disclaimer = str(item.get("text") or "")
                    continue
                parsed.append(Question.from_content(item, asset_base_path=asset_base_path))
            questions[str(lang)] = parsed

        metadata = data.get("metadata")
        return cls(
            questions=questions,
            disclaimer=disclaimer or None,
            metadata=metadata if isinstance(metadata, dict) else None,
        )


def resolve_questions(content: TestContent, preferred: str | None) -> tuple[str, list[Question]]:
    """Pick the question list for `preferred`, else the default language, else the first one."""
    if preferred and preferred in content.questions:
        return preferred, content.questions[preferred]
    fallback = settings.default_language
    if fallback in content.questions:
        return fallback, content.questions[fallback]
    lang = next(iter(content.questions))
    return lang, content.questions[lang]
