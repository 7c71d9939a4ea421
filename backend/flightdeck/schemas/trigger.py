from __future__ import annotations

from collections.abc import Iterable, Mapping
from operator import eq, ge, gt, le, lt
from typing import Any

from pydantic import BaseModel

StatsSnapshot = Mapping[str, float]

_OPERATORS = {
    ">=": ge,
    ">": gt,
    "==": eq,
    "<=": le,
    "<": lt,
}

_DESCRIPTIONS = {
    "category_percent": {
        "en": 'Category "{category}" {op} {value}%',
        "de": 'Kategorie "{category}" {op} {value}%',
        "it": 'Categoria "{category}" {op} {value}%',
        "fr": 'Catégorie "{category}" {op} {value}%',
    },
    "flights_count": {
        "en": "Flights count {op} {value}",
        "de": "Anzahl Flüge {op} {value}",
        "it": "Numero di voli {op} {value}",
        "fr": "Nombre de vols {op} {value}",
    },
}


class TestTrigger(BaseModel):
    """Unlock condition over a flat statistics snapshot."""

    type: str
    operator: str = ">="
    value: float = 0
    category: str | None = None
    stat: str | None = None

    @property
    def stat_name(self) -> str | None:
        if self.type == "flights_count":
            return "flightsCount"
        if self.type == "category_percent":
            return f"category.{self.category}.percent" if self.category else None
        if self.type == "stat":
            return self.stat or None
        return None

    def evaluate(self, stats: StatsSnapshot) -> bool:
        name = self.stat_name
        compare = _OPERATORS.get(self.operator)
        if name is None or compare is None:
            return False

        # A stat the snapshot does not carry counts as zero: the test stays locked.
        actual = stats.get(name, 0)
        try:
            return bool(compare(float(actual), float(self.value)))
        except (TypeError, ValueError):
            return False

    def describe(self, lang: str = "en") -> str:
        value = int(self.value) if float(self.value).is_integer() else self.value
        templates = _DESCRIPTIONS.get(self.type)
        if templates is None:
            name = self.stat if self.type == "stat" else self.type
            return f"{name} {self.operator} {value}"
        template = templates.get(lang) or templates["en"]
        return template.format(category=self.category or "?", op=self.operator, value=value)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def triggers_met(triggers: Iterable[TestTrigger], stats: StatsSnapshot) -> bool:
    """All triggers must hold; no triggers means always unlocked."""
    return all(t.evaluate(stats) for t in triggers)
