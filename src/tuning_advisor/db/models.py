"""
tuning_advisor.db.models

Persistence schema for the tuning advisor.

Responsibilities:
- Define ORM models for long-lived advisory work:
  - Assessment: submitted configuration sources + hardware profile, latest verdict
  - AssessmentRun: durable pipeline run state + review context
  - Artifact: rendered outputs (tuned configs, markdown report)
  - AuditEvent: append-only audit trail
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Enum, ForeignKey, Index, String, Text, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuning_advisor.db.base import Base


def utcnow() -> datetime:
    # Naive UTC timestamps keep SQLite and PostgreSQL behaviour identical.
    return datetime.now(UTC).replace(tzinfo=None)


class AssessmentStatus(enum.StrEnum):
    registered = "REGISTERED"
    in_progress = "IN_PROGRESS"
    awaiting_review = "AWAITING_REVIEW"
    completed = "COMPLETED"
    rejected = "REJECTED"
    failed = "FAILED"


class RunStatus(enum.StrEnum):
    running = "RUNNING"
    awaiting_review = "AWAITING_REVIEW"
    completed = "COMPLETED"
    rejected = "REJECTED"
    failed = "FAILED"


class ArtifactType(enum.StrEnum):
    # Enum values are stored in DB; treat as stable API contract.
    tuned_properties = "TUNED_PROPERTIES"
    tuned_yaml = "TUNED_YAML"
    postgresql_conf = "POSTGRESQL_CONF"
    jvm_options = "JVM_OPTIONS"
    advisory_report = "ADVISORY_REPORT"


class Assessment(Base):
    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)

    environment: Mapped[str] = mapped_column(String(32), nullable=False, default="prod")
    # Active Spring profile(s), comma separated.
    profile_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    hardware: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # [{"name": ..., "format": ... | null, "content": ...}]
    sources: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    disabled_rules: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[AssessmentStatus] = mapped_column(
        Enum(AssessmentStatus), nullable=False, index=True
    )
    verdict: Mapped[str | None] = mapped_column(String(16), nullable=True)
    summary: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    runs: Mapped[list[AssessmentRun]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan"
    )
    artifacts: Mapped[list[Artifact]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan"
    )


class AssessmentRun(Base):
    __tablename__ = "assessment_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("assessments.id"), nullable=False, index=True
    )

    status: Mapped[RunStatus] = mapped_column(Enum(RunStatus), nullable=False, index=True)
    # Pipeline state snapshot, checkpointed after every graph step.
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    assessment: Mapped[Assessment] = relationship(back_populates="runs")

    __table_args__ = (Index("ix_runs_assessment_created", "assessment_id", "created_at"),)


class Artifact(Base):
    __tablename__ = "artifacts"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("assessments.id"), nullable=False, index=True
    )

    type: Mapped[ArtifactType] = mapped_column(Enum(ArtifactType), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False, default="text/plain")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    assessment: Mapped[Assessment] = relationship(back_populates="artifacts")

    __table_args__ = (Index("ix_artifacts_assessment_type", "assessment_id", "type"),)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), nullable=False, index=True
    )
    run_id: Mapped[uuid.UUID | None] = mapped_column(
        SAUuid(as_uuid=True), nullable=True, index=True
    )

    actor: Mapped[str] = mapped_column(String(256), nullable=False)  # user id / pipeline
    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_audit_assessment_created", "assessment_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Sources are stored verbatim so a run can be replayed after rules change.
