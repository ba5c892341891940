"""
tuning_advisor.orchestrator.state

Typed state schema used by the assessment graph.

Responsibilities:
- Define the contract between nodes (inputs/outputs).
- Provide a JSON-serialisable shape for persistence (stored in runs.state).
"""

from __future__ import annotations

from typing import Annotated, Any, TypedDict

from tuning_advisor.orchestrator.reducers import append_audit


class AssessmentState(TypedDict, total=False):
    # Identifiers
    assessment_id: str
    run_id: str

    # Inputs
    sources: list[dict[str, Any]]
    hardware: dict[str, Any]
    environment: str
    profile_name: str | None
    disabled_rules: list[str]
    review_mode: str

    # Parsed configuration: [{"key", "value", "source", "line"}]
    entries: list[dict[str, Any]]
    profile: dict[str, Any]

    # Advisory results
    findings: list[dict[str, Any]]
    verdict: str
    summary: dict[str, int]
    recommendations: dict[str, dict[str, str]]
    rationale: dict[str, str]

    # Review (reviewer decision is merged in by the service on resume)
    review: dict[str, Any]
    outcome: str

    # Rendered outputs keyed by artifact type (persisted by the service layer)
    artifacts: dict[str, str]

    stage: str
    audit_log: Annotated[list[dict[str, Any]], append_audit]


# --- Module Notes -----------------------------------------------------------
# LangGraph drops keys that are not declared here, so every transient value a node
# hands to a later node must be listed.
