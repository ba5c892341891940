"""
tests.conftest

Shared fixtures: in-memory app + authenticated HTTP client helpers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from tuning_advisor.api.app import create_app
from tuning_advisor.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", database_url="sqlite+aiosqlite:///:memory:")


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth(client: httpx.AsyncClient) -> Callable[..., Awaitable[dict[str, str]]]:
    """Returns `await auth(subject, *roles)` -> bearer headers minted by the dev endpoint."""

    async def _auth(subject: str, *roles: str) -> dict[str, str]:
        r = await client.post("/v1/dev/token", json={"subject": subject, "roles": list(roles)})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _auth
