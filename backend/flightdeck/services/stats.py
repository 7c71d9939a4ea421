from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flightdeck.core.errors import PersistenceError
from flightdeck.models.stats import UserStats
from flightdeck.schemas.submission import utcnow
from flightdeck.schemas.trigger import StatsSnapshot

log = logging.getLogger(__name__)

_COUNTERS = (
    "flightsCount",
    "takeoffsCount",
    "landingsCount",
    "flyingDays",
    "airtimeMinutes",
    "cummAltDiff",
)


def _num(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def flatten_stats(dashboard: Mapping[str, Any]) -> StatsSnapshot:
    """Turn the client's dashboard statistics into a flat, read-only name -> number view.

    Besides the raw counters this carries `flightHours` (from airtime),
    `progress.percentage`, and `category.<id>.percent` per progress category.
    Extra numeric top-level keys pass through unchanged.
    """
    flat: dict[str, float] = {}

    for key, value in dashboard.items():
        n = _num(value)
        if n is not None:
            flat[str(key)] = n

    for key in _COUNTERS:
        flat.setdefault(key, 0.0)
    flat.setdefault("flightHours", flat["airtimeMinutes"] / 60.0)

    progress = dashboard.get("progress")
    if isinstance(progress, Mapping):
        for key in ("total", "checked", "percentage"):
            n = _num(progress.get(key))
            if n is not None:
                flat[f"progress.{key}"] = n
        categories = progress.get("categories")
        if isinstance(categories, Mapping):
            for cat_id, cat in categories.items():
                if not isinstance(cat, Mapping):
                    continue
                for key in ("percent", "checked", "total"):
                    n = _num(cat.get(key))
                    if n is not None:
                        flat[f"category.{cat_id}.{key}"] = n

    return MappingProxyType(flat)


class StatsProvider:
    def __init__(self, db: Session):
        self.db = db

    def get_raw(self, user_id: str) -> dict[str, Any]:
        row = self.db.get(UserStats, user_id)
        return dict(row.data or {}) if row else {}

    def get_stats(self, user_id: str) -> StatsSnapshot:
        return flatten_stats(self.get_raw(user_id))

    def put_stats(self, user_id: str, dashboard: Mapping[str, Any]) -> StatsSnapshot:
        row = self.db.get(UserStats, user_id)
        if row is None:
            row = UserStats(user_id=user_id)
            self.db.add(row)
        row.data = dict(dashboard)
        row.updated_at = utcnow()

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("could not save statistics") from e

        log.info("stats updated user=%s", user_id)
        return flatten_stats(row.data)
