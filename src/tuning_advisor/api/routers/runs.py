from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.api.deps import db_session, settings_dep
from tuning_advisor.auth.deps import require_roles
from tuning_advisor.auth.models import ROLE_REVIEWER, Principal
from tuning_advisor.services.assessment_service import AssessmentService
from tuning_advisor.settings import Settings

router = APIRouter(prefix="/v1/runs", tags=["runs"])


class ReviewRequest(BaseModel):
    approved: bool
    # Rule ids to accept; empty means every outstanding error.
    waived: list[str] = Field(default_factory=list)
    comment: str | None = Field(default=None, max_length=2000)


@router.post("/{run_id}/review")
async def review_run(
    run_id: uuid.UUID,
    body: ReviewRequest,
    principal: Principal = Depends(require_roles(ROLE_REVIEWER)),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    # Unknown runs surface as NotFoundError (404); runs not awaiting review as 409.
    svc = AssessmentService(session=session, settings=settings)
    return await svc.resume(run_id=run_id, actor=principal.subject, decision=body.model_dump())
