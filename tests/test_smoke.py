"""
tests.test_smoke

Minimal smoke tests to validate the service can boot and serve core endpoints.

Responsibilities:
- Ensure the FastAPI app starts and the DB readiness probe works in test mode.
"""

from __future__ import annotations

import httpx
import pytest

from tuning_advisor.api.app import create_app
from tuning_advisor.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["service"] == "tuning-advisor"
    assert r.headers["x-request-id"]

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json()["status"] == "ready"
    assert r.json()["rules"] > 0
    assert r.json()["review_mode"] == "gate"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz", headers={"x-request-id": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"


@pytest.mark.asyncio
async def test_dev_token_disabled_in_prod() -> None:
    app = create_app(
        settings=Settings(env="prod", database_url="sqlite+aiosqlite:///:memory:")
    )
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.post("/v1/dev/token", json={"subject": "alice", "roles": []})
            assert r.status_code == 404


@pytest.mark.asyncio
async def test_protected_endpoints_require_token(client: httpx.AsyncClient) -> None:
    r = await client.get("/v1/advisory/rules")
    assert r.status_code == 401

    r = await client.get("/v1/advisory/rules", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_dev_token_rejects_unknown_roles(client: httpx.AsyncClient) -> None:
    r = await client.post("/v1/dev/token", json={"subject": "alice", "roles": ["root"]})
    assert r.status_code == 422
