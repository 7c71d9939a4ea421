from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flightdeck.core.errors import PersistenceError, TestNotFoundError
from flightdeck.core.request_cache import invalidate
from flightdeck.models.test_definition import TestDefinition
from flightdeck.schemas.submission import utcnow
from flightdeck.schemas.test import TestMetadata
from flightdeck.schemas.trigger import TestTrigger

log = logging.getLogger(__name__)


def to_metadata(row: TestDefinition) -> TestMetadata:
    return TestMetadata(
        id=row.id,
        names=dict(row.names or {}),
        folder=row.folder or "",
        json_file=row.json_file or "",
        content_url=row.content_url,
        pass_threshold=row.pass_threshold,
        retry_delay_days=row.retry_delay_days,
        triggers=[TestTrigger(**t) for t in row.triggers or []],
    )


class TestCatalog:
    def __init__(self, db: Session):
        self.db = db

    def list_available_tests(self) -> list[TestMetadata]:
        rows = self.db.scalars(
            select(TestDefinition).where(TestDefinition.is_active == True).order_by(TestDefinition.id)  # noqa: E712
        ).all()
        return [to_metadata(r) for r in rows]

    def get_test(self, test_id: str) -> TestMetadata:
        row = self.db.get(TestDefinition, test_id)
        if row is None or not row.is_active:
            raise TestNotFoundError(f"test {test_id} not found")
        return to_metadata(row)

    def upsert_test(self, meta: TestMetadata, *, is_active: bool = True) -> TestMetadata:
        row = self.db.get(TestDefinition, meta.id)
        if row is None:
            row = TestDefinition(id=meta.id)
            self.db.add(row)

        row.names = dict(meta.names)
        row.folder = meta.folder
        row.json_file = meta.json_file
        row.content_url = meta.content_url
        row.pass_threshold = meta.pass_threshold
        row.retry_delay_days = meta.retry_delay_days
        row.triggers = [t.to_json() for t in meta.triggers]
        row.is_active = is_active
        row.updated_at = utcnow()

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not save test {meta.id}") from e

        # New content reference: drop whatever was cached for the old one.
        invalidate("test_content", meta.id)
        log.info("catalog upsert test=%s active=%s", meta.id, is_active)
        return to_metadata(row)
