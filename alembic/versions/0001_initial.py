"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLAlchemy persists Python enum member names.
_ASSESSMENT_STATUS = sa.Enum(
    "registered",
    "in_progress",
    "awaiting_review",
    "completed",
    "rejected",
    "failed",
    name="assessmentstatus",
)
_RUN_STATUS = sa.Enum(
    "running", "awaiting_review", "completed", "rejected", "failed", name="runstatus"
)
_ARTIFACT_TYPE = sa.Enum(
    "tuned_properties",
    "tuned_yaml",
    "postgresql_conf",
    "jvm_options",
    "advisory_report",
    name="artifacttype",
)


def upgrade() -> None:
    op.create_table(
        "assessments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner", sa.String(256), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("environment", sa.String(32), nullable=False),
        sa.Column("profile_name", sa.String(128), nullable=True),
        sa.Column("hardware", sa.JSON(), nullable=False),
        sa.Column("sources", sa.JSON(), nullable=False),
        sa.Column("disabled_rules", sa.JSON(), nullable=False),
        sa.Column("status", _ASSESSMENT_STATUS, nullable=False),
        sa.Column("verdict", sa.String(16), nullable=True),
        sa.Column("summary", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_assessments_owner", "assessments", ["owner"])
    op.create_index("ix_assessments_status", "assessments", ["status"])

    op.create_table(
        "assessment_runs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assessment_id", sa.Uuid(), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("status", _RUN_STATUS, nullable=False),
        sa.Column("state", sa.JSON(), nullable=False),
        sa.Column("review_reason", sa.Text(), nullable=True),
        sa.Column("review_payload", sa.JSON(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_assessment_runs_assessment_id", "assessment_runs", ["assessment_id"])
    op.create_index("ix_assessment_runs_status", "assessment_runs", ["status"])
    op.create_index(
        "ix_runs_assessment_created", "assessment_runs", ["assessment_id", "created_at"]
    )

    op.create_table(
        "artifacts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assessment_id", sa.Uuid(), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("type", _ARTIFACT_TYPE, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_artifacts_assessment_id", "artifacts", ["assessment_id"])
    op.create_index("ix_artifacts_type", "artifacts", ["type"])
    op.create_index("ix_artifacts_assessment_type", "artifacts", ["assessment_id", "type"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assessment_id", sa.Uuid(), nullable=False),
        sa.Column("run_id", sa.Uuid(), nullable=True),
        sa.Column("actor", sa.String(256), nullable=False),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_assessment_id", "audit_events", ["assessment_id"])
    op.create_index("ix_audit_events_run_id", "audit_events", ["run_id"])
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_assessment_created", "audit_events", ["assessment_id", "created_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("artifacts")
    op.drop_table("assessment_runs")
    op.drop_table("assessments")
    for enum in (_ARTIFACT_TYPE, _RUN_STATUS, _ASSESSMENT_STATUS):
        enum.drop(op.get_bind(), checkfirst=True)
