from __future__ import annotations

from typing import Any

import pytest

from tuning_advisor.orchestrator.graph import build_graph
from tuning_advisor.orchestrator.interrupts import ReviewRequired
from tuning_advisor.orchestrator.nodes import OUTCOME_APPROVED, OUTCOME_PASSED, OUTCOME_REJECTED


def _state(properties: str, **overrides: Any) -> dict[str, Any]:
    state: dict[str, Any] = {
        "assessment_id": "a-1",
        "sources": [{"name": "application.properties", "content": properties}],
        "hardware": {"cpu_cores": 4, "memory_mb": 8192},
        "environment": "prod",
        "review_mode": "gate",
        "review": {},
        "audit_log": [],
    }
    state.update(overrides)
    return state


def _events(state: dict[str, Any]) -> list[str]:
    return [e["event"] for e in state["audit_log"]]


ERRORS = "spring.datasource.hikari.minimum-idle=20\nspring.jpa.open-in-view=false\n"


@pytest.mark.asyncio
async def test_report_mode_never_pauses() -> None:
    final = await build_graph().ainvoke(_state(ERRORS, review_mode="report"))
    assert final["outcome"] == OUTCOME_PASSED
    assert final["verdict"] == "FAIL"
    assert _events(final) == [
        "ENTRY",
        "PARSE",
        "PROFILE",
        "VALIDATE",
        "RECOMMEND",
        "GATE_PASSED",
        "RENDER",
        "FINISH",
    ]
    assert set(final["artifacts"]) == {
        "TUNED_PROPERTIES",
        "TUNED_YAML",
        "POSTGRESQL_CONF",
        "JVM_OPTIONS",
        "ADVISORY_REPORT",
    }
    # Flagged settings are replaced by the tuned value.
    assert "spring.datasource.hikari.minimum-idle=9" in final["artifacts"]["TUNED_PROPERTIES"]


@pytest.mark.asyncio
async def test_gate_mode_pauses_on_errors() -> None:
    with pytest.raises(ReviewRequired) as exc:
        await build_graph().ainvoke(_state(ERRORS))
    assert exc.value.payload["verdict"] == "FAIL"
    assert [e["rule_id"] for e in exc.value.payload["errors"]] == ["pool.min-idle-exceeds-max"]


@pytest.mark.asyncio
async def test_rejected_review_skips_rendering() -> None:
    state = _state(ERRORS, review={"decision": {"approved": False, "comment": "no"}})
    final = await build_graph().ainvoke(state)
    assert final["outcome"] == OUTCOME_REJECTED
    assert "artifacts" not in final
    assert _events(final)[-2:] == ["REVIEW_REJECTED", "FINISH"]


@pytest.mark.asyncio
async def test_approved_review_waives_listed_rules() -> None:
    decision = {"approved": True, "waived": ["pool.min-idle-exceeds-max"], "comment": None}
    final = await build_graph().ainvoke(_state(ERRORS, review={"decision": decision}))
    assert final["outcome"] == OUTCOME_APPROVED
    assert final["verdict"] != "FAIL"
    assert final["summary"]["waived"] == 1
    waived = [f for f in final["findings"] if f["waived"]]
    assert [f["rule_id"] for f in waived] == ["pool.min-idle-exceeds-max"]
    # Waived settings are left as the operator wrote them.
    assert "spring.datasource.hikari.minimum-idle=20" in final["artifacts"]["TUNED_PROPERTIES"]


@pytest.mark.asyncio
async def test_rendered_files_never_contain_literal_secrets() -> None:
    props = "spring.datasource.password=hunter2\n"
    final = await build_graph().ainvoke(_state(props, review_mode="report"))
    properties = final["artifacts"]["TUNED_PROPERTIES"]
    assert "hunter2" not in properties
    assert "spring.datasource.password=${SPRING_DATASOURCE_PASSWORD}" in properties


@pytest.mark.asyncio
async def test_yaml_artifact_skipped_on_key_conflicts() -> None:
    props = "app.name=orders\napp.name.full=orders-service\n"
    final = await build_graph().ainvoke(_state(props, review_mode="report"))
    assert "TUNED_YAML" not in final["artifacts"]
    assert "TUNED_PROPERTIES" in final["artifacts"]
    render = next(e for e in final["audit_log"] if e["event"] == "RENDER")
    assert render["details"]["skipped"]


@pytest.mark.asyncio
async def test_entry_rejects_missing_sources() -> None:
    with pytest.raises(ValueError):
        await build_graph().ainvoke(_state("", sources=[]))
