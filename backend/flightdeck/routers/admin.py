from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flightdeck.core.config import settings
from flightdeck.core.security import CurrentUser, UserRole, require_roles
from flightdeck.db.session import get_db
from flightdeck.schemas.api import SchoolResultOut, TestDefinitionIn
from flightdeck.schemas.test import TestMetadata
from flightdeck.services.catalog import TestCatalog
from flightdeck.services.school_results import list_school_results

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/tests/{test_id}", response_model=TestMetadata)
def upsert_test(
    test_id: str,
    body: TestDefinitionIn,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(UserRole.instructor)),
):
    meta = TestMetadata(
        id=test_id,
        names=body.names,
        folder=body.folder,
        json_file=body.json_file,
        content_url=body.content_url,
        pass_threshold=settings.default_pass_threshold if body.pass_threshold is None else body.pass_threshold,
        retry_delay_days=settings.default_retry_delay_days if body.retry_delay_days is None else body.retry_delay_days,
        triggers=body.triggers,
    )
    return TestCatalog(db).upsert_test(meta, is_active=body.is_active)


@router.get("/schools/{school_id}/results", response_model=list[SchoolResultOut])
def school_results(
    school_id: str,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(UserRole.instructor)),
):
    return [
        SchoolResultOut(
            school_id=r.school_id,
            user_id=r.user_id,
            test_id=r.test_id,
            passed=r.passed,
            score_percent=r.score_percent,
            attempt_count=r.attempt_count,
            submitted_at=r.submitted_at,
        )
        for r in list_school_results(db, school_id)
    ]
