"""
tuning_advisor.api.routers.dev_auth

Token minting for local development and tests.

Responsibilities:
- Issue operator/reviewer/admin bearer tokens without an identity provider.
- Stay invisible (404) when running with `TA_ENV=prod`.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from tuning_advisor.api.deps import settings_dep
from tuning_advisor.auth.jwt import JwtConfig, issue_token
from tuning_advisor.settings import Settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=256)
    # Unknown role names are rejected with 422.
    roles: list[str] = Field(default_factory=list)
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: list[str]
    expires_in: int


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    ttl = timedelta(minutes=body.ttl_minutes)
    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=body.subject,
        roles=body.roles,
        ttl=ttl,
    )
    return DevTokenResponse(
        access_token=token,
        roles=sorted(set(body.roles)),
        expires_in=int(ttl.total_seconds()),
    )
