"""
tuning_advisor.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Encapsulate app.state access patterns (settings/engine/sessionmaker).
- Enforce the request upload limit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tuning_advisor.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # Settings passed to `create_app` win over the process-wide cached instance.
    return getattr(request.app.state, "settings", None) or get_settings()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `tuning_advisor.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


# Starlette renamed the 413 constant (REQUEST_ENTITY_TOO_LARGE -> CONTENT_TOO_LARGE).
PAYLOAD_TOO_LARGE = 413


def check_upload_size(texts: Iterable[str], settings: Settings, *, what: str = "sources") -> None:
    size = sum(len(t.encode("utf-8")) for t in texts)
    if size > settings.max_upload_bytes:
        raise HTTPException(
            status_code=PAYLOAD_TOO_LARGE,
            detail=f"{what} total {size} bytes; limit is {settings.max_upload_bytes}",
        )
