from __future__ import annotations

from typing import Any

from tuning_advisor.advisory.engine import evaluate_config
from tuning_advisor.advisory.findings import AdvisoryReport, Finding, Severity
from tuning_advisor.advisory.hardware import HardwareProfile
from tuning_advisor.advisory.recommend import (
    Recommendations,
    merge,
    recommend,
    redact_secrets,
    render_jvm_options,
    render_postgresql_conf,
    render_properties,
    render_yaml,
)
from tuning_advisor.advisory.report import render_markdown
from tuning_advisor.advisory.sources import (
    ConfigEntry,
    ConfigFormat,
    ConfigSet,
    ConfigSource,
    load_sources,
)
from tuning_advisor.db.models import ArtifactType
from tuning_advisor.orchestrator.interrupts import ReviewRequired
from tuning_advisor.orchestrator.state import AssessmentState

OUTCOME_PASSED = "PASSED"
OUTCOME_APPROVED = "APPROVED"
OUTCOME_REJECTED = "REJECTED"


def _audit(event: str, **details: Any) -> list[dict[str, Any]]:
    return [{"event": event, "details": details}]


async def entry_node(state: AssessmentState) -> dict[str, Any]:
    """
    - Validate input
    - Initialise defaults for optional keys
    """

    if not str(state.get("assessment_id", "")).strip():
        raise ValueError("Missing assessment_id")
    sources = state.get("sources")
    if not isinstance(sources, list) or not sources:
        raise ValueError("sources must be a non-empty list")
    for src in sources:
        if not isinstance(src, dict) or "name" not in src or "content" not in src:
            raise ValueError("each source needs a name and content")
    if not isinstance(state.get("hardware"), dict):
        raise ValueError("hardware must be a dict")

    return {
        "environment": state.get("environment") or "prod",
        "disabled_rules": list(state.get("disabled_rules") or []),
        "review_mode": state.get("review_mode") or "gate",
        "review": dict(state.get("review") or {}),
        "stage": "entry",
        "audit_log": _audit("ENTRY", sources=[s["name"] for s in sources]),
    }


async def parse_node(state: AssessmentState) -> dict[str, Any]:
    sources = [
        ConfigSource(
            name=str(s["name"]),
            content=str(s["content"]),
            format=ConfigFormat(s["format"]) if s.get("format") else None,
        )
        for s in state["sources"]
    ]
    config = load_sources(sources, state.get("profile_name"))
    entries = [
        {"key": e.key, "value": e.value, "source": e.source, "line": e.line} for e in config
    ]
    return {
        "entries": entries,
        "stage": "parse",
        "audit_log": _audit("PARSE", sources=len(sources), keys=len(entries)),
    }


async def profile_node(state: AssessmentState) -> dict[str, Any]:
    profile = HardwareProfile.from_mapping(state["hardware"]).to_dict()
    return {"profile": profile, "stage": "profile", "audit_log": _audit("PROFILE", **profile)}


async def validate_node(state: AssessmentState) -> dict[str, Any]:
    report = evaluate_config(
        _config(state),
        HardwareProfile.from_mapping(state["profile"]),
        environment=state["environment"],
        disabled_rules=state.get("disabled_rules", []),
    )
    summary = report.summary()
    return {
        "findings": [f.to_dict() for f in report.findings],
        "verdict": report.verdict.value,
        "summary": summary,
        "stage": "validate",
        "audit_log": _audit("VALIDATE", verdict=report.verdict.value, **summary),
    }


async def recommend_node(state: AssessmentState) -> dict[str, Any]:
    recs = recommend(HardwareProfile.from_mapping(state["profile"]))
    return {
        "recommendations": recs.grouped(),
        "rationale": dict(recs.rationale),
        "stage": "recommend",
        "audit_log": _audit("RECOMMEND", keys=len(recs.as_mapping())),
    }


async def gate_node(state: AssessmentState) -> dict[str, Any]:
    report = _report(state)
    decision = (state.get("review") or {}).get("decision")

    if decision is not None:
        if not decision.get("approved"):
            return {
                "outcome": OUTCOME_REJECTED,
                "stage": "gate",
                "audit_log": _audit("REVIEW_REJECTED", comment=decision.get("comment")),
            }
        # An approval without explicit rule ids accepts every outstanding error.
        waived = list(decision.get("waived") or []) or sorted({f.rule_id for f in report.errors})
        report = report.waive(frozenset(waived))
        return {
            "findings": [f.to_dict() for f in report.findings],
            "verdict": report.verdict.value,
            "summary": report.summary(),
            "outcome": OUTCOME_APPROVED,
            "stage": "gate",
            "audit_log": _audit(
                "REVIEW_APPROVED", waived=waived, comment=decision.get("comment")
            ),
        }

    errors = report.errors
    if errors and state.get("review_mode") == "gate":
        raise ReviewRequired(
            reason=f"{len(errors)} unwaived error finding(s) need reviewer sign-off",
            payload={
                "verdict": report.verdict.value,
                "summary": report.summary(),
                "errors": [f.to_dict() for f in errors],
            },
        )

    return {
        "outcome": OUTCOME_PASSED,
        "stage": "gate",
        "audit_log": _audit("GATE_PASSED", verdict=report.verdict.value),
    }


def route_after_gate(state: AssessmentState) -> str:
    if state.get("outcome") == OUTCOME_REJECTED:
        return "finish"
    return "render"


async def render_node(state: AssessmentState) -> dict[str, Any]:
    report = _report(state)
    groups = state.get("recommendations", {})
    recs = Recommendations(
        spring=dict(groups.get("spring", {})),
        jvm=dict(groups.get("jvm", {})),
        postgres=dict(groups.get("postgres", {})),
        rationale=dict(state.get("rationale", {})),
    )

    # Explicit settings are kept unless an unwaived finding flagged them.
    flagged = [k for f in report.active if f.severity != Severity.info for k in f.keys]
    merged = redact_secrets(
        merge(_config(state), recs, only_missing=True, override=flagged)
    )

    header = f"Tuned for {_describe(state['profile'])}"
    artifacts = {
        ArtifactType.tuned_properties.value: render_properties(merged, header),
        ArtifactType.postgresql_conf.value: render_postgresql_conf(merged, header),
        ArtifactType.jvm_options.value: render_jvm_options(merged),
        ArtifactType.advisory_report.value: render_markdown(report, rationale=recs.rationale),
    }
    skipped: list[str] = []
    try:
        artifacts[ArtifactType.tuned_yaml.value] = render_yaml(merged)
    except ValueError as e:
        # Keys like `a.b=x` plus `a.b.c=y` cannot both exist in YAML.
        skipped.append(f"{ArtifactType.tuned_yaml.value}: {e}")

    return {
        "artifacts": artifacts,
        "stage": "render",
        "audit_log": _audit("RENDER", artifacts=sorted(artifacts), skipped=skipped),
    }


async def finish_node(state: AssessmentState) -> dict[str, Any]:
    outcome = state.get("outcome") or OUTCOME_PASSED
    return {
        "stage": "finish",
        "audit_log": _audit("FINISH", outcome=outcome, verdict=state.get("verdict")),
    }


def _config(state: AssessmentState) -> ConfigSet:
    return ConfigSet(ConfigEntry(**e) for e in state.get("entries", []))


def _report(state: AssessmentState) -> AdvisoryReport:
    return AdvisoryReport(
        findings=[Finding.from_dict(f) for f in state.get("findings", [])],
        recommendations=dict(state.get("recommendations", {})),
        environment=state.get("environment", "prod"),
        profile=dict(state.get("profile", {})),
    )


def _describe(profile: dict[str, Any]) -> str:
    return (
        f"{profile['cpu_cores']} cores, {profile['memory_mb']} MB, {profile['storage']}, "
        f"{profile['topology']}, {profile['workload']}"
    )
