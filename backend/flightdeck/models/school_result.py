from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from flightdeck.db.base import Base


class SchoolTestResult(Base):
    __tablename__ = "school_test_results"

    school_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    test_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    passed: Mapped[bool] = mapped_column(Boolean)
    score_percent: Mapped[float] = mapped_column(Float)
    attempt_count: Mapped[int] = mapped_column(Integer, default=1)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
