"""
tuning_advisor.api.routers.advisory

Stateless advisory endpoints: nothing is persisted.

Responsibilities:
- Evaluate configuration sources against a hardware profile.
- Return tuned recommendations as JSON or rendered config text.
- List the rule catalogue.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from tuning_advisor.advisory.engine import evaluate
from tuning_advisor.advisory.recommend import (
    recommend,
    render_jvm_options,
    render_postgresql_conf,
    render_properties,
    render_yaml,
)
from tuning_advisor.advisory.report import render_markdown
from tuning_advisor.advisory.rules import catalog, get_rule
from tuning_advisor.advisory.sources import ConfigSource
from tuning_advisor.api.deps import check_upload_size, settings_dep
from tuning_advisor.api.routers.assessments import HardwareIn, SourceIn
from tuning_advisor.auth.deps import get_principal
from tuning_advisor.settings import Settings

router = APIRouter(
    prefix="/v1/advisory", tags=["advisory"], dependencies=[Depends(get_principal)]
)

_RENDERERS = {
    "properties": render_properties,
    "yaml": render_yaml,
    "pg": render_postgresql_conf,
    "jvm": render_jvm_options,
}


class EvaluateRequest(BaseModel):
    hardware: HardwareIn
    sources: list[SourceIn] = Field(default_factory=list)
    environment: str = Field(default="prod", min_length=1, max_length=32)
    profile_name: str | None = Field(default=None, max_length=128)
    disabled_rules: list[str] = Field(default_factory=list)
    include_markdown: bool = False


class RecommendRequest(BaseModel):
    hardware: HardwareIn
    format: Literal["json", "properties", "yaml", "pg", "jvm"] = "json"


@router.post("/evaluate")
async def evaluate_sources(
    body: EvaluateRequest,
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    check_upload_size((s.content for s in body.sources), settings)
    for rule_id in body.disabled_rules:
        get_rule(rule_id)

    report = evaluate(
        [ConfigSource(s.name, s.content, s.format) for s in body.sources],
        body.hardware.to_profile(),
        environment=body.environment,
        profile_name=body.profile_name,
        disabled_rules=body.disabled_rules,
    )
    out = report.to_dict()
    if body.include_markdown:
        out["markdown"] = render_markdown(report)
    return out


@router.post("/recommend", response_model=None)
async def recommend_settings(body: RecommendRequest) -> dict[str, Any] | PlainTextResponse:
    recs = recommend(body.hardware.to_profile())
    if body.format == "json":
        return {"recommendations": recs.grouped(), "rationale": recs.rationale}
    return PlainTextResponse(_RENDERERS[body.format](recs.as_mapping()))


@router.get("/rules")
async def list_rules() -> list[dict[str, object]]:
    return [r.to_dict() for r in catalog()]
