from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.db.models import Artifact, ArtifactType


class ArtifactRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(
        self,
        *,
        assessment_id: uuid.UUID,
        type: ArtifactType,
        content: str,
        content_type: str = "text/plain",
    ) -> Artifact:
        # One artifact per type: re-running an assessment replaces its outputs.
        stmt = select(Artifact).where(
            Artifact.assessment_id == assessment_id, Artifact.type == type
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            existing.content = content
            existing.content_type = content_type
            await self._session.flush()
            return existing

        art = Artifact(
            assessment_id=assessment_id, type=type, content=content, content_type=content_type
        )
        self._session.add(art)
        await self._session.flush()
        return art

    async def list_for_assessment(self, assessment_id: uuid.UUID) -> list[Artifact]:
        stmt = (
            select(Artifact)
            .where(Artifact.assessment_id == assessment_id)
            .order_by(Artifact.type)
        )
        return list((await self._session.execute(stmt)).scalars().all())
