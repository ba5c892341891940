"""
tuning_advisor.api.routers.assessments

Endpoints for operators who submit configurations for assessment.

Responsibilities:
- Register an assessment (configuration sources + hardware profile).
- Run the assessment pipeline and return its status.
- Provide read APIs for the audit trail and rendered artifacts.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND

from tuning_advisor.advisory.hardware import MIN_MEMORY_MB, HardwareProfile
from tuning_advisor.advisory.rules import get_rule
from tuning_advisor.advisory.sources import ConfigFormat
from tuning_advisor.api.deps import check_upload_size, db_session, settings_dep
from tuning_advisor.auth.deps import get_principal, require_roles
from tuning_advisor.auth.models import ROLE_OPERATOR, Principal
from tuning_advisor.db.models import Assessment, RunStatus
from tuning_advisor.db.repositories.artifacts import ArtifactRepo
from tuning_advisor.db.repositories.assessments import AssessmentRepo
from tuning_advisor.db.repositories.audit import AuditRepo
from tuning_advisor.db.repositories.runs import RunRepo
from tuning_advisor.services.assessment_service import AssessmentService
from tuning_advisor.settings import Settings

router = APIRouter(prefix="/v1/assessments", tags=["assessments"])


class SourceIn(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    content: str
    # Detected from the name and content when omitted.
    format: ConfigFormat | None = None


class HardwareIn(BaseModel):
    cpu_cores: int = Field(ge=1, le=1024)
    memory_mb: int = Field(ge=MIN_MEMORY_MB)
    storage: Literal["ssd", "hdd"] = "ssd"
    topology: Literal["dedicated", "colocated"] = "dedicated"
    workload: Literal["oltp", "olap", "mixed"] = "oltp"
    expected_app_instances: int = Field(default=1, ge=1)

    def to_profile(self) -> HardwareProfile:
        return HardwareProfile(**self.model_dump())


class AssessmentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    hardware: HardwareIn
    sources: list[SourceIn] = Field(min_length=1)
    environment: str = Field(default="prod", min_length=1, max_length=32)
    profile_name: str | None = Field(default=None, max_length=128)
    disabled_rules: list[str] = Field(default_factory=list)


class AssessmentCreateResponse(BaseModel):
    assessment_id: uuid.UUID
    run_id: uuid.UUID


class AssessmentResponse(BaseModel):
    id: uuid.UUID
    owner: str
    name: str
    environment: str
    profile_name: str | None
    status: str
    verdict: str | None
    summary: dict[str, Any]
    hardware: dict[str, Any]
    sources: list[str]


def _to_response(a: Assessment) -> AssessmentResponse:
    return AssessmentResponse(
        id=a.id,
        owner=a.owner,
        name=a.name,
        environment=a.environment,
        profile_name=a.profile_name,
        status=a.status.value,
        verdict=a.verdict,
        summary=a.summary or {},
        hardware=a.hardware,
        sources=[s["name"] for s in a.sources],
    )


async def _visible_assessment(
    session: AsyncSession, assessment_id: uuid.UUID, principal: Principal
) -> Assessment:
    # Other owners' assessments are reported as missing, not forbidden.
    assessment = await AssessmentRepo(session).get(assessment_id)
    if assessment is None or not principal.can_see(assessment.owner):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Assessment not found")
    return assessment


@router.post(
    "",
    response_model=AssessmentCreateResponse,
    dependencies=[Depends(require_roles(ROLE_OPERATOR))],
)
async def create_assessment(
    body: AssessmentCreateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> AssessmentCreateResponse:
    check_upload_size((s.content for s in body.sources), settings)
    for rule_id in body.disabled_rules:
        # Raises ValueError (422) for unknown ids.
        get_rule(rule_id)

    assessment = await AssessmentRepo(session).create(
        owner=principal.subject,
        name=body.name,
        hardware=body.hardware.to_profile().to_dict(),
        sources=[s.model_dump(mode="json") for s in body.sources],
        environment=body.environment,
        profile_name=body.profile_name,
        disabled_rules=body.disabled_rules,
    )
    await AuditRepo(session).add(
        assessment_id=assessment.id,
        run_id=None,
        actor=principal.subject,
        event_type="ASSESSMENT_REGISTERED",
        details={"name": body.name, "sources": [s.name for s in body.sources]},
    )

    # Execution is explicit via /evaluate.
    svc = AssessmentService(session=session, settings=settings)
    run_id = await svc.start(assessment_id=assessment.id, actor=principal.subject)
    return AssessmentCreateResponse(assessment_id=assessment.id, run_id=run_id)


@router.get(
    "",
    response_model=list[AssessmentResponse],
    dependencies=[Depends(require_roles(ROLE_OPERATOR))],
)
async def list_assessments(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> list[AssessmentResponse]:
    items = await AssessmentRepo(session).list_for_owner(principal.subject)
    return [_to_response(a) for a in items]


@router.get("/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> AssessmentResponse:
    return _to_response(await _visible_assessment(session, assessment_id, principal))


@router.post(
    "/{assessment_id}/evaluate",
    dependencies=[Depends(require_roles(ROLE_OPERATOR))],
)
async def evaluate_assessment(
    assessment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    await _visible_assessment(session, assessment_id, principal)

    svc = AssessmentService(session=session, settings=settings)
    latest = await RunRepo(session).latest_for_assessment(assessment_id)
    # A pending run is executed; anything finished is re-evaluated in a fresh run.
    if latest is not None and latest.status == RunStatus.running:
        run_id = latest.id
    else:
        run_id = await svc.start(assessment_id=assessment_id, actor=principal.subject)
    return await svc.execute(run_id=run_id, actor=principal.subject)


@router.get("/{assessment_id}/audit")
async def list_audit_events(
    assessment_id: uuid.UUID,
    run_id: uuid.UUID | None = None,
    event_type: str | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> list[dict[str, Any]]:
    # Newest first (see AuditRepo).
    await _visible_assessment(session, assessment_id, principal)
    events = await AuditRepo(session).list_for_assessment(
        assessment_id, run_id=run_id, event_type=event_type, limit=limit
    )
    return [
        {
            "id": str(e.id),
            "run_id": str(e.run_id) if e.run_id else None,
            "event_type": e.event_type,
            "actor": e.actor,
            "details": e.details,
            "created_at": e.created_at.isoformat(),
        }
        for e in events
    ]


@router.get("/{assessment_id}/artifacts")
async def list_artifacts(
    assessment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> list[dict[str, Any]]:
    await _visible_assessment(session, assessment_id, principal)
    artifacts = await ArtifactRepo(session).list_for_assessment(assessment_id)
    return [
        {
            "id": str(a.id),
            "type": a.type.value,
            "content_type": a.content_type,
            "content": a.content,
            "created_at": a.created_at.isoformat(),
        }
        for a in artifacts
    ]


# --- Module Notes -----------------------------------------------------------
# Routers do not embed pipeline logic; they delegate to AssessmentService.
