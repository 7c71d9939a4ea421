import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flightdeck.db.base import Base


class TestSubmissionRecord(Base):
    __tablename__ = "test_submissions"
    __table_args__ = (UniqueConstraint("user_id", "test_id", name="uq_submission_user_test"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    test_id: Mapped[str] = mapped_column(String(64), index=True)

    answers: Mapped[dict] = mapped_column(JSON, default=dict)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="in_progress")
    retry_available_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    student_acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    attempts: Mapped[list["TestAttemptRecord"]] = relationship(
        back_populates="submission",
        order_by="TestAttemptRecord.attempt_no",
        cascade="all, delete-orphan",
    )


class TestAttemptRecord(Base):
    __tablename__ = "test_attempts"
    __table_args__ = (UniqueConstraint("submission_id", "attempt_no", name="uq_attempt_submission_no"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("test_submissions.id"), index=True)

    attempt_no: Mapped[int] = mapped_column(Integer)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    score_percent: Mapped[float] = mapped_column(Float)
    passed: Mapped[bool] = mapped_column(Boolean)
    correct: Mapped[int] = mapped_column(Integer, default=0)
    total: Mapped[int] = mapped_column(Integer, default=0)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)

    answers: Mapped[dict] = mapped_column(JSON, default=dict)
    reviewed: Mapped[bool] = mapped_column(Boolean, default=False)

    submission: Mapped[TestSubmissionRecord] = relationship(back_populates="attempts")
