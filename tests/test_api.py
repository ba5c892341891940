"""
tests.test_api

End-to-end API tests against an in-memory database.

Responsibilities:
- Drive an assessment through the review gate (approve and reject paths).
- Check ownership, role enforcement and error mapping.
- Exercise the stateless advisory and guide endpoints.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
import pytest

from tuning_advisor.api.app import create_app
from tuning_advisor.settings import Settings

PROPERTIES = "spring.datasource.hikari.minimum-idle=20\nspring.jpa.open-in-view=false\n"


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": "orders-service",
        "hardware": {"cpu_cores": 4, "memory_mb": 8192},
        "environment": "prod",
        "sources": [
            {"name": "application.properties", "content": PROPERTIES},
            {"name": "postgresql.conf", "content": "shared_buffers = 2GB\nmax_connections = 100\n"},
        ],
    }
    payload.update(overrides)
    return payload


async def _create(client: httpx.AsyncClient, headers: dict[str, str], **overrides: Any) -> dict[str, str]:
    r = await client.post("/v1/assessments", json=_payload(**overrides), headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_assessment_review_approve_flow(client: httpx.AsyncClient, auth) -> None:
    operator = await auth("alice", "operator")
    reviewer = await auth("rita", "reviewer")

    created = await _create(client, operator)
    assessment_id, run_id = created["assessment_id"], created["run_id"]

    r = await client.get(f"/v1/assessments/{assessment_id}", headers=operator)
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"
    assert r.json()["sources"] == ["application.properties", "postgresql.conf"]

    r = await client.post(f"/v1/assessments/{assessment_id}/evaluate", headers=operator)
    assert r.status_code == 200, r.text
    paused = r.json()
    assert paused["status"] == "AWAITING_REVIEW"
    assert paused["run_id"] == run_id
    assert {e["rule_id"] for e in paused["review"]["errors"]} == {"pool.min-idle-exceeds-max"}

    r = await client.get(f"/v1/assessments/{assessment_id}", headers=operator)
    assert r.json()["status"] == "AWAITING_REVIEW"
    assert r.json()["verdict"] == "FAIL"

    r = await client.post(
        f"/v1/runs/{run_id}/review",
        json={"approved": True, "comment": "fixed-size pool is intended"},
        headers=reviewer,
    )
    assert r.status_code == 200, r.text
    done = r.json()
    assert done["status"] == "COMPLETED"
    assert done["verdict"] != "FAIL"
    assert done["summary"]["waived"] == 1

    r = await client.get(f"/v1/assessments/{assessment_id}", headers=operator)
    assert r.json()["status"] == "COMPLETED"

    r = await client.get(f"/v1/assessments/{assessment_id}/artifacts", headers=operator)
    artifacts = {a["type"]: a for a in r.json()}
    assert set(artifacts) == {
        "TUNED_PROPERTIES",
        "TUNED_YAML",
        "POSTGRESQL_CONF",
        "JVM_OPTIONS",
        "ADVISORY_REPORT",
    }
    properties = artifacts["TUNED_PROPERTIES"]["content"]
    # The waived setting is kept; missing settings are filled in.
    assert "spring.datasource.hikari.minimum-idle=20" in properties
    assert "spring.datasource.hikari.maximum-pool-size=9" in properties
    assert "shared_buffers = 2GB" in artifacts["POSTGRESQL_CONF"]["content"]
    assert artifacts["ADVISORY_REPORT"]["content_type"] == "text/markdown"

    r = await client.get(f"/v1/assessments/{assessment_id}/audit", headers=operator)
    events = [e["event_type"] for e in r.json()]
    # Newest first.
    assert events.index("RUN_COMPLETED") < events.index("ASSESSMENT_REGISTERED")
    assert {
        "ASSESSMENT_REGISTERED",
        "RUN_CREATED",
        "VALIDATE",
        "REVIEW_REQUIRED",
        "RUN_RESUMED",
        "REVIEW_APPROVED",
        "RENDER",
    } <= set(events)

    r = await client.get(
        f"/v1/assessments/{assessment_id}/audit",
        params={"event_type": "REVIEW_APPROVED", "run_id": run_id},
        headers=operator,
    )
    approved = r.json()
    assert len(approved) == 1
    assert approved[0]["actor"] == "pipeline"
    assert approved[0]["details"]["waived"] == ["pool.min-idle-exceeds-max"]

    # A finished run cannot be reviewed again.
    r = await client.post(f"/v1/runs/{run_id}/review", json={"approved": True}, headers=reviewer)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_assessment_review_reject_flow(client: httpx.AsyncClient, auth) -> None:
    operator = await auth("alice", "operator")
    reviewer = await auth("rita", "reviewer")
    created = await _create(client, operator)

    r = await client.post(f"/v1/assessments/{created['assessment_id']}/evaluate", headers=operator)
    assert r.json()["status"] == "AWAITING_REVIEW"

    r = await client.post(
        f"/v1/runs/{created['run_id']}/review",
        json={"approved": False, "comment": "fix the pool first"},
        headers=reviewer,
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "REJECTED"

    r = await client.get(f"/v1/assessments/{created['assessment_id']}/artifacts", headers=operator)
    assert r.json() == []
    r = await client.get(f"/v1/assessments/{created['assessment_id']}", headers=operator)
    assert r.json()["status"] == "REJECTED"


@pytest.mark.asyncio
async def test_clean_configuration_completes_without_review(client: httpx.AsyncClient, auth) -> None:
    operator = await auth("alice", "operator")
    created = await _create(
        client,
        operator,
        environment="dev",
        sources=[{"name": "application.properties", "content": "server.port=8080\n"}],
    )
    r = await client.post(f"/v1/assessments/{created['assessment_id']}/evaluate", headers=operator)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "COMPLETED"

    # Re-evaluating a finished assessment starts a new run.
    r = await client.post(f"/v1/assessments/{created['assessment_id']}/evaluate", headers=operator)
    assert r.json()["status"] == "COMPLETED"
    assert r.json()["run_id"] != created["run_id"]


@pytest.mark.asyncio
async def test_unparseable_source_fails_the_run(client: httpx.AsyncClient, auth) -> None:
    operator = await auth("alice", "operator")
    created = await _create(
        client, operator, sources=[{"name": "application.yml", "content": "spring: [1, 2\n"}]
    )
    r = await client.post(f"/v1/assessments/{created['assessment_id']}/evaluate", headers=operator)
    assert r.status_code == 422
    assert r.json()["source"] == "application.yml"

    r = await client.get(f"/v1/assessments/{created['assessment_id']}", headers=operator)
    assert r.json()["status"] == "FAILED"
    r = await client.get(f"/v1/assessments/{created['assessment_id']}/audit", headers=operator)
    assert "RUN_FAILED" in {e["event_type"] for e in r.json()}


@pytest.mark.asyncio
async def test_assessments_are_private_to_their_owner(client: httpx.AsyncClient, auth) -> None:
    alice = await auth("alice", "operator")
    bob = await auth("bob", "operator")
    admin = await auth("root", "admin")
    created = await _create(client, alice)

    r = await client.get(f"/v1/assessments/{created['assessment_id']}", headers=bob)
    assert r.status_code == 404
    r = await client.post(f"/v1/assessments/{created['assessment_id']}/evaluate", headers=bob)
    assert r.status_code == 404
    r = await client.get(f"/v1/assessments/{created['assessment_id']}", headers=admin)
    assert r.status_code == 200

    r = await client.get("/v1/assessments", headers=bob)
    assert r.json() == []
    r = await client.get("/v1/assessments", headers=alice)
    assert [a["id"] for a in r.json()] == [created["assessment_id"]]


@pytest.mark.asyncio
async def test_roles_are_enforced(client: httpx.AsyncClient, auth) -> None:
    reviewer = await auth("rita", "reviewer")
    operator = await auth("alice", "operator")

    r = await client.post("/v1/assessments", json=_payload(), headers=reviewer)
    assert r.status_code == 403

    created = await _create(client, operator)
    r = await client.post(f"/v1/runs/{created['run_id']}/review", json={"approved": True}, headers=operator)
    assert r.status_code == 403

    r = await client.post(f"/v1/runs/{uuid.uuid4()}/review", json={"approved": True}, headers=reviewer)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_invalid_assessment_requests(client: httpx.AsyncClient, auth) -> None:
    operator = await auth("alice", "operator")

    r = await client.post("/v1/assessments", json=_payload(disabled_rules=["no.such-rule"]), headers=operator)
    assert r.status_code == 422
    assert "unknown rule" in r.json()["detail"]

    r = await client.post("/v1/assessments", json=_payload(sources=[]), headers=operator)
    assert r.status_code == 422

    r = await client.post(
        "/v1/assessments",
        json=_payload(hardware={"cpu_cores": 0, "memory_mb": 8192}),
        headers=operator,
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_advisory_evaluate(client: httpx.AsyncClient, auth) -> None:
    headers = await auth("carol")
    r = await client.post(
        "/v1/advisory/evaluate",
        json={
            "hardware": {"cpu_cores": 4, "memory_mb": 8192},
            "sources": [{"name": "application.properties", "content": PROPERTIES}],
            "include_markdown": True,
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["verdict"] == "FAIL"
    assert body["summary"]["error"] >= 1
    assert body["recommendations"]["spring"]["spring.datasource.hikari.maximum-pool-size"] == "9"
    assert body["markdown"].startswith("# Tuning assessment")


@pytest.mark.asyncio
async def test_advisory_recommend_formats(client: httpx.AsyncClient, auth) -> None:
    headers = await auth("carol")
    hardware = {"cpu_cores": 4, "memory_mb": 8192}

    r = await client.post("/v1/advisory/recommend", json={"hardware": hardware}, headers=headers)
    assert r.json()["recommendations"]["jvm"]["jvm.Xmx"] == "6g"
    assert "spring.datasource.hikari.maximum-pool-size" in r.json()["rationale"]

    r = await client.post(
        "/v1/advisory/recommend", json={"hardware": hardware, "format": "pg"}, headers=headers
    )
    assert r.headers["content-type"].startswith("text/plain")
    assert "shared_buffers = 2GB" in r.text

    r = await client.get("/v1/advisory/rules", headers=headers)
    assert "secrets.plaintext" in {rule["id"] for rule in r.json()}


@pytest.mark.asyncio
async def test_upload_limit() -> None:
    settings = Settings(env="test", database_url="sqlite+aiosqlite:///:memory:", max_upload_bytes=10)
    app = create_app(settings=settings)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.post("/v1/dev/token", json={"subject": "carol", "roles": []})
            headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
            r = await client.post(
                "/v1/advisory/evaluate",
                json={
                    "hardware": {"cpu_cores": 4, "memory_mb": 8192},
                    "sources": [{"name": "application.properties", "content": PROPERTIES}],
                },
                headers=headers,
            )
            assert r.status_code == 413
            assert "limit is 10" in r.json()["detail"]

            r = await client.post(
                "/v1/guides/lint",
                json={"documents": [{"path": "g.md", "content": GUIDE}]},
                headers=headers,
            )
            assert r.status_code == 413
            assert r.json()["detail"].startswith("documents total")


GUIDE = "# Pool\n\n```properties\nspring.datasource.hikari.minimum-idle=20\n```\n"


@pytest.mark.asyncio
async def test_guide_endpoints(client: httpx.AsyncClient, auth) -> None:
    headers = await auth("carol")
    r = await client.post(
        "/v1/guides/lint",
        json={
            "documents": [{"path": "a.md", "content": GUIDE}, {"path": "b.md", "content": GUIDE}],
            "hardware": {"cpu_cores": 4, "memory_mb": 8192},
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["reports"][0]["advisory"]["verdict"] == "FAIL"
    assert [(d["path_a"], d["path_b"]) for d in body["duplicates"]] == [("a.md", "b.md")]

    r = await client.post(
        "/v1/guides/compare",
        json={"a": {"path": "a.md", "content": GUIDE}, "b": {"path": "b.md", "content": "# Other\n"}},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["duplicate"] is False
    assert r.json()["threshold"] == 0.9
