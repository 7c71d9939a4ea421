"""create test engine tables

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "test_definitions",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("names", sa.JSON(), nullable=False),
        sa.Column("folder", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("json_file", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("content_url", sa.String(length=2000), nullable=True),
        sa.Column("pass_threshold", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("retry_delay_days", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("triggers", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_test_definitions_is_active", "test_definitions", ["is_active"], unique=False)

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "test_submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("test_id", sa.String(length=64), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("retry_available_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("student_acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "test_id", name="uq_submission_user_test"),
    )
    op.create_index("ix_test_submissions_user_id", "test_submissions", ["user_id"], unique=False)
    op.create_index("ix_test_submissions_test_id", "test_submissions", ["test_id"], unique=False)

    op.create_table(
        "test_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("submission_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("test_submissions.id"), nullable=False),
        sa.Column("attempt_no", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("score_percent", sa.Float(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("correct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("language", sa.String(length=16), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("reviewed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.UniqueConstraint("submission_id", "attempt_no", name="uq_attempt_submission_no"),
    )
    op.create_index("ix_test_attempts_submission_id", "test_attempts", ["submission_id"], unique=False)

    op.create_table(
        "school_test_results",
        sa.Column("school_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("test_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("score_percent", sa.Float(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("school_test_results")

    op.drop_index("ix_test_attempts_submission_id", table_name="test_attempts")
    op.drop_table("test_attempts")

    op.drop_index("ix_test_submissions_test_id", table_name="test_submissions")
    op.drop_index("ix_test_submissions_user_id", table_name="test_submissions")
    op.drop_table("test_submissions")

    op.drop_table("user_stats")

    op.drop_index("ix_test_definitions_is_active", table_name="test_definitions")
    op.drop_table("test_definitions")
