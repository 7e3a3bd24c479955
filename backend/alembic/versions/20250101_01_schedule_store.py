"""Schedule store schema: topics, courses, learning paths, enrollments and audit log."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250101_01_schedule_store"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "topics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("time_allocated", sa.Float(), nullable=False, server_default="0"),
        sa.Column("time_unit", sa.String(length=16), nullable=False, server_default="hours"),
        sa.Column("pre_requisites", sa.JSON(), nullable=False),
        sa.Column("co_requisites", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("topic_ids", sa.JSON(), nullable=False),
        sa.Column("topic_prerequisites", sa.JSON(), nullable=False),
        sa.Column("topic_corequisites", sa.JSON(), nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "learning_paths",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("course_ids", sa.JSON(), nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "learning_path_enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "learning_path_id",
            sa.String(length=36),
            sa.ForeignKey("learning_paths.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_learning_path_enrollments_path", "learning_path_enrollments", ["learning_path_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_learning_path_enrollments_path", table_name="learning_path_enrollments")
    op.drop_table("learning_path_enrollments")
    op.drop_table("learning_paths")
    op.drop_table("courses")
    op.drop_table("topics")
