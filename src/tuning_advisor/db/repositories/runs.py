"""
tuning_advisor.db.repositories.runs

Repository for `AssessmentRun` entities.

Responsibilities:
- Create and fetch pipeline runs.
- Persist checkpoints (state snapshots) and review/error metadata.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.db.models import AssessmentRun, RunStatus, utcnow


class RunRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self, *, assessment_id: uuid.UUID, initial_state: dict[str, Any]
    ) -> AssessmentRun:
        run = AssessmentRun(
            assessment_id=assessment_id,
            status=RunStatus.running,
            state=initial_state,
            review_reason=None,
            review_payload={},
            error=None,
        )
        self._session.add(run)
        await self._session.flush()
        return run

    async def get(self, run_id: uuid.UUID) -> AssessmentRun | None:
        return await self._session.get(AssessmentRun, run_id)

    async def latest_for_assessment(self, assessment_id: uuid.UUID) -> AssessmentRun | None:
        stmt = (
            select(AssessmentRun)
            .where(AssessmentRun.assessment_id == assessment_id)
            .order_by(desc(AssessmentRun.created_at))
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def set_state(
        self,
        *,
        run_id: uuid.UUID,
        status: RunStatus | None = None,
        state: dict[str, Any] | None = None,
        review_reason: str | None = None,
        review_payload: dict[str, Any] | None = None,
        error: str | None = None,
        clear_review: bool = False,
    ) -> None:
        # Locked so concurrent writers cannot clobber a checkpoint.
        run = await self._session.get(AssessmentRun, run_id, with_for_update=True)
        if run is None:
            return
        if status is not None:
            run.status = status
        if state is not None:
            run.state = state
        if clear_review:
            run.review_reason = None
            run.review_payload = {}
        if review_reason is not None:
            run.review_reason = review_reason
        if review_payload is not None:
            run.review_payload = review_payload
        if error is not None:
            run.error = error
        run.updated_at = utcnow()


# --- Module Notes -----------------------------------------------------------
# Checkpoints are written after every pipeline step by the assessment service.
