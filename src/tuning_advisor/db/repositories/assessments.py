from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.db.models import Assessment, AssessmentStatus, utcnow


class AssessmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        owner: str,
        name: str,
        hardware: dict[str, Any],
        sources: list[dict[str, Any]],
        environment: str = "prod",
        profile_name: str | None = None,
        disabled_rules: list[str] | None = None,
    ) -> Assessment:
        assessment = Assessment(
            owner=owner,
            name=name,
            hardware=hardware,
            sources=sources,
            environment=environment,
            profile_name=profile_name,
            disabled_rules=list(disabled_rules or []),
            status=AssessmentStatus.registered,
            verdict=None,
            summary={},
        )
        self._session.add(assessment)
        await self._session.flush()
        return assessment

    async def get(self, assessment_id: uuid.UUID) -> Assessment | None:
        return await self._session.get(Assessment, assessment_id)

    async def list_for_owner(self, owner: str, *, limit: int = 100) -> list[Assessment]:
        stmt = (
            select(Assessment)
            .where(Assessment.owner == owner)
            .order_by(desc(Assessment.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def set_status(self, assessment_id: uuid.UUID, status: AssessmentStatus) -> None:
        assessment = await self._session.get(Assessment, assessment_id, with_for_update=True)
        if assessment is None:
            return
        assessment.status = status
        assessment.updated_at = utcnow()

    async def set_result(
        self,
        *,
        assessment_id: uuid.UUID,
        verdict: str | None,
        summary: dict[str, Any],
    ) -> None:
        assessment = await self._session.get(Assessment, assessment_id, with_for_update=True)
        if assessment is None:
            return
        assessment.verdict = verdict
        assessment.summary = summary
        assessment.updated_at = utcnow()
