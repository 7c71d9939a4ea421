"""Quiz questions and their correctness predicate.

Answers arrive as loose JSON values. Before grading, each value is coerced into
the answer variant its question kind expects (a string, a set of strings, a
boolean, or a left->right mapping). A value of the wrong shape is a caller bug
but is graded as incorrect rather than raised. Image items and unrecognised
types are display-only: they take no answer and are never graded.
"""

from __future__ import annotations

import enum
import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, Field, model_validator

from flightdeck.core.errors import GradingInputError

log = logging.getLogger(__name__)

DISCLAIMER_ID = "disclaimer"


class QuestionKind(str, enum.Enum):
    single_choice = "single_choice"
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    text = "text"
    matching = "matching"
    image = "image"
    unknown = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "QuestionKind":
        return _KIND_ALIASES.get(str(raw or "").strip().lower(), cls.unknown)


_KIND_ALIASES = {
    "single_choice": QuestionKind.single_choice,
    "single": QuestionKind.single_choice,
    "multiple_choice": QuestionKind.multiple_choice,
    "multiple": QuestionKind.multiple_choice,
    "true_false": QuestionKind.true_false,
    "boolean": QuestionKind.true_false,
    "text": QuestionKind.text,
    "short_answer": QuestionKind.text,
    "matching": QuestionKind.matching,
    "image": QuestionKind.image,
}


@dataclass(frozen=True)
class ChoiceAnswer:
    value: str


@dataclass(frozen=True)
class ChoiceSetAnswer:
    values: frozenset[str]


@dataclass(frozen=True)
class BoolAnswer:
    value: bool


@dataclass(frozen=True)
class TextAnswer:
    value: str


@dataclass(frozen=True)
class MatchingAnswer:
    pairs: Mapping[str, str]


Answer = Union[ChoiceAnswer, ChoiceSetAnswer, BoolAnswer, TextAnswer, MatchingAnswer]


def _coerce_matching(raw: Any) -> MatchingAnswer:
    pairs: dict[str, str] = {}
    if isinstance(raw, Mapping):
        items = raw.items()
    elif isinstance(raw, (list, tuple)):
        items = []
        for p in raw:
            if not isinstance(p, Mapping):
                raise GradingInputError("matching pair must be an object")
            items.append((p.get("left"), p.get("right")))
    else:
        raise GradingInputError("matching answer must be a mapping")

    for left, right in items:
        if not isinstance(left, str) or not isinstance(right, str):
            raise GradingInputError("matching pairs must map strings to strings")
        pairs[left] = right
    return MatchingAnswer(pairs=pairs)


def coerce_answer(kind: QuestionKind, raw: Any) -> Answer | None:
    """Map a raw JSON answer onto the variant `kind` expects.

    Returns None for a missing answer; raises GradingInputError on a shape mismatch.
    """
    if raw is None:
        return None

    if kind is QuestionKind.single_choice:
        if not isinstance(raw, str):
            raise GradingInputError("single choice answer must be a string")
        return ChoiceAnswer(raw)

    if kind is QuestionKind.multiple_choice:
        if not isinstance(raw, (list, tuple, set, frozenset)):
            raise GradingInputError("multiple choice answer must be a list of strings")
        if not all(isinstance(v, str) for v in raw):
            raise GradingInputError("multiple choice answer must be a list of strings")
        return ChoiceSetAnswer(frozenset(raw))

    if kind is QuestionKind.true_false:
        if not isinstance(raw, bool):
            raise GradingInputError("true/false answer must be a boolean")
        return BoolAnswer(raw)

    if kind is QuestionKind.text:
        if not isinstance(raw, str):
            raise GradingInputError("text answer must be a string")
        return TextAnswer(raw)

    if kind is not QuestionKind.matching:
        raise GradingInputError(f"{kind.value} items take no answer")
    return _coerce_matching(raw)


class MatchingPair(BaseModel):
    left: str
    right: str


class Question(BaseModel):
    id: str
    kind: QuestionKind
    text: str = ""
    image_url: str | None = None
    is_local_image: bool = False

    options: list[str] = Field(default_factory=list)
    right_items: list[str] = Field(default_factory=list)

    correct_option_index: int | None = None
    correct_option_indices: list[int] | None = None
    correct_bool_answer: bool | None = None
    reference_answer: str | None = None
    correct_pairs: list[MatchingPair] | None = None

    @model_validator(mode="after")
    def _check_references(self) -> "Question":
        n = len(self.options)
        if self.correct_option_index is not None and not 0 <= self.correct_option_index < n:
            raise ValueError(f"question {self.id}: correct option index out of range")
        for i in self.correct_option_indices or []:
            if not 0 <= i < n:
                raise ValueError(f"question {self.id}: correct option index {i} out of range")
        if self.correct_pairs is not None:
            lefts = [p.left for p in self.correct_pairs]
            if len(set(lefts)) != len(lefts):
                raise ValueError(f"question {self.id}: duplicate left item in matching pairs")
            for p in self.correct_pairs:
                if p.left not in self.options or p.right not in self.right_items:
                    raise ValueError(f"question {self.id}: matching pair references unknown item")
        return self

    @classmethod
    def from_content(cls, data: Mapping[str, Any], *, asset_base_path: str | None = None) -> "Question":
        """Build a question from one entry of a test content file."""
        if not data.get("id"):
            raise ValueError("question without id")
        kind = QuestionKind.parse(data.get("type") or "")
        if kind is QuestionKind.unknown:
            log.warning("question %s: unknown type %r, shown without grading", data.get("id"), data.get("type"))

        options = [str(o) for o in data.get("options") or []]
        right_items: list[str] = []
        pairs_from_items: list[MatchingPair] | None = None

        raw_pairs = data.get("matchingPairs")
        if isinstance(raw_pairs, list):
            pairs = [p for p in raw_pairs if isinstance(p, Mapping)]
            if not options:
                options = [str(p.get("left") or "") for p in pairs]
            right_items = [str(p.get("right") or "") for p in pairs]
            pairs_from_items = [
                MatchingPair(left=str(p.get("left") or ""), right=str(p.get("right") or ""))
                for p in pairs
            ]
        elif isinstance(data.get("matching_pairs"), list):
            right_items = [str(r) for r in data["matching_pairs"]]

        fields: dict[str, Any] = {}
        correct = data.get("correctAnswer")
        if kind is QuestionKind.single_choice and correct is not None:
            fields["correct_option_index"] = correct
        elif kind is QuestionKind.multiple_choice and isinstance(correct, list):
            fields["correct_option_indices"] = correct
        elif kind is QuestionKind.true_false and correct is not None:
            fields["correct_bool_answer"] = correct
        elif kind is QuestionKind.text and correct is not None:
            fields["reference_answer"] = str(correct)
        elif kind is QuestionKind.matching:
            if isinstance(correct, list):
                fields["correct_pairs"] = [MatchingPair(**p) for p in correct]
            elif isinstance(correct, Mapping):
                fields["correct_pairs"] = [MatchingPair(left=k, right=v) for k, v in correct.items()]
            elif pairs_from_items is not None:
                fields["correct_pairs"] = pairs_from_items

        image_url = data.get("image_url") or data.get("img_url")
        is_local = False
        if image_url and asset_base_path and not str(image_url).startswith("http"):
            image_url = f"{asset_base_path}/{image_url}"
            is_local = True

        return cls(
            id=str(data["id"]),
            kind=kind,
            text=str(data.get("text") or ""),
            image_url=image_url,
            is_local_image=is_local,
            options=options,
            right_items=right_items,
            **fields,
        )

    @property
    def is_display_only(self) -> bool:
        return self.kind in (QuestionKind.image, QuestionKind.unknown)

    @property
    def is_auto_gradable(self) -> bool:
        return self.kind is not QuestionKind.text and not self.is_display_only

    def is_answer_correct(self, raw_answer: Any) -> bool | None:
        """True/False verdict for the submitted answer; None for free-text and display-only items."""
        if not self.is_auto_gradable:
            return None

        try:
            answer = coerce_answer(self.kind, raw_answer)
        except GradingInputError as e:
            log.debug("question %s: %s", self.id, e)
            return False
        if answer is None:
            return False

        if isinstance(answer, ChoiceAnswer):
            if self.correct_option_index is None:
                return False
            return answer.value == self.options[self.correct_option_index]

        if isinstance(answer, ChoiceSetAnswer):
            if self.correct_option_indices is None:
                return False
            return answer.values == {self.options[i] for i in self.correct_option_indices}

        if isinstance(answer, BoolAnswer):
            return self.correct_bool_answer is not None and answer.value is self.correct_bool_answer

        if isinstance(answer, MatchingAnswer):
            if self.correct_pairs is None:
                return False
            return dict(answer.pairs) == {p.left: p.right for p in self.correct_pairs}

        return False

    def correct_answer(self) -> Any:
        """The expected answer in submission shape, for review screens."""
        if self.kind is QuestionKind.single_choice:
            return None if self.correct_option_index is None else self.options[self.correct_option_index]
        if self.kind is QuestionKind.multiple_choice:
            if self.correct_option_indices is None:
                return None
            return [self.options[i] for i in sorted(set(self.correct_option_indices))]
        if self.kind is QuestionKind.true_false:
            return self.correct_bool_answer
        if self.kind is QuestionKind.text:
            return self.reference_answer
        if self.is_display_only:
            return None
        if self.correct_pairs is None:
            return None
        return {p.left: p.right for p in self.correct_pairs}

    def shuffled_right_items(self, seed: str) -> list[str]:
        # Same seed, same order: a reload of one rendering must not reshuffle.
        items = list(self.right_items)
        random.Random(seed).shuffle(items)
        return items
