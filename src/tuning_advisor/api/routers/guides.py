"""
tuning_advisor.api.routers.guides

Guide corpus checks over HTTP.

Responsibilities:
- Lint markdown operations guides (structure, snippet languages, embedded config).
- Compare two guides for near-duplication.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tuning_advisor.api.deps import check_upload_size, settings_dep
from tuning_advisor.api.routers.assessments import HardwareIn
from tuning_advisor.auth.deps import get_principal
from tuning_advisor.guides.lint import compare_guides, lint_guides
from tuning_advisor.guides.markdown import parse_guide
from tuning_advisor.settings import Settings

router = APIRouter(prefix="/v1/guides", tags=["guides"], dependencies=[Depends(get_principal)])


class GuideIn(BaseModel):
    path: str = Field(min_length=1, max_length=512)
    content: str


class LintRequest(BaseModel):
    documents: list[GuideIn] = Field(min_length=1)
    # When set, configuration snippets are also run through the advisory engine.
    hardware: HardwareIn | None = None
    environment: str = Field(default="prod", min_length=1, max_length=32)


class CompareRequest(BaseModel):
    a: GuideIn
    b: GuideIn


def _check_size(docs: list[GuideIn], settings: Settings) -> None:
    check_upload_size((d.content for d in docs), settings, what="documents")


@router.post("/lint")
async def lint(body: LintRequest, settings: Settings = Depends(settings_dep)) -> dict[str, Any]:
    _check_size(body.documents, settings)
    reports, duplicates = lint_guides(
        [(d.path, d.content) for d in body.documents],
        duplicate_threshold=settings.duplicate_threshold,
        profile=body.hardware.to_profile() if body.hardware else None,
        environment=body.environment,
    )
    return {
        "ok": all(r.ok for r in reports),
        "reports": [r.to_dict() for r in reports],
        "duplicates": [d.to_dict() for d in duplicates],
    }


@router.post("/compare")
async def compare(body: CompareRequest, settings: Settings = Depends(settings_dep)) -> dict[str, Any]:
    _check_size([body.a, body.b], settings)
    similarity = compare_guides(
        parse_guide(body.a.content, body.a.path), parse_guide(body.b.content, body.b.path)
    )
    return {
        **similarity.to_dict(),
        "threshold": settings.duplicate_threshold,
        "duplicate": similarity.is_duplicate(settings.duplicate_threshold),
    }
