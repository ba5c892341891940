"""
tuning_advisor.db.repositories.audit

Repository for `AuditEvent` entities.

Responsibilities:
- Append audit events (operator/reviewer/pipeline actions), singly or per pipeline step.
- Query an assessment's trail, optionally narrowed to one run or event type.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.db.models import AuditEvent

PIPELINE_ACTOR = "pipeline"


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        assessment_id: uuid.UUID,
        run_id: uuid.UUID | None,
        actor: str,
        event_type: str,
        details: dict[str, Any],
    ) -> AuditEvent:
        event = AuditEvent(
            assessment_id=assessment_id,
            run_id=run_id,
            actor=actor,
            event_type=event_type,
            details=details,
        )
        self._session.add(event)
        await self._session.flush()
        return event

    async def add_pipeline_entries(
        self,
        *,
        assessment_id: uuid.UUID,
        run_id: uuid.UUID,
        stage: str | None,
        entries: Iterable[dict[str, Any]],
    ) -> int:
        """
        Persist `audit_log` entries emitted by graph nodes (`{"event", "details"}`).
        Returns the number of rows written.
        """

        events = [
            AuditEvent(
                assessment_id=assessment_id,
                run_id=run_id,
                actor=PIPELINE_ACTOR,
                event_type=str(entry.get("event", "UNKNOWN")),
                details={"stage": stage, **dict(entry.get("details", {}))},
            )
            for entry in entries
        ]
        if events:
            self._session.add_all(events)
            await self._session.flush()
        return len(events)

    async def list_for_assessment(
        self,
        assessment_id: uuid.UUID,
        *,
        run_id: uuid.UUID | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[AuditEvent]:
        # Newest first.
        stmt = select(AuditEvent).where(AuditEvent.assessment_id == assessment_id)
        if run_id is not None:
            stmt = stmt.where(AuditEvent.run_id == run_id)
        if event_type is not None:
            stmt = stmt.where(AuditEvent.event_type == event_type)
        stmt = stmt.order_by(desc(AuditEvent.created_at)).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())
