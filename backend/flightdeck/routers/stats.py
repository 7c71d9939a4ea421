from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from flightdeck.core.security import CurrentUser, get_current_user
from flightdeck.db.session import get_db
from flightdeck.schemas.api import StatsResponse
from flightdeck.services.stats import StatsProvider

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/me", response_model=StatsResponse)
def my_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    stats = StatsProvider(db).get_stats(user.id)
    return StatsResponse(user_id=user.id, stats=dict(stats))


@router.put("/me", response_model=StatsResponse)
def put_my_stats(
    dashboard: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    stats = StatsProvider(db).put_stats(user.id, dashboard)
    return StatsResponse(user_id=user.id, stats=dict(stats))
