"""
tuning_advisor.api.routers.health

Liveness (`/healthz`) and readiness (`/readyz`) probes.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor import __version__
from tuning_advisor.advisory.rules import catalog
from tuning_advisor.api.deps import db_session, settings_dep
from tuning_advisor.settings import Settings

router = APIRouter()


@router.get("/healthz")
async def healthz(settings: Settings = Depends(settings_dep)) -> dict[str, str]:
    return {"status": "ok", "service": settings.service_name, "version": __version__}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    # Ready means the database answers and the rule catalogue is loaded.
    await session.execute(text("SELECT 1"))
    return {"status": "ready", "rules": len(catalog()), "review_mode": settings.review_mode}
