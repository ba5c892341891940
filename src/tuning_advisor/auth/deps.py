"""
tuning_advisor.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Enforce roles via reusable dependency factories.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from tuning_advisor.api.deps import settings_dep
from tuning_advisor.auth.jwt import JwtConfig, JwtValidationError, decode_principal
from tuning_advisor.auth.models import Principal
from tuning_advisor.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return decode_principal(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e


def require_roles(*required: str):
    required_set = frozenset(required)

    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.has_roles(required_set):
            raise HTTPException(
                status_code=HTTP_403_FORBIDDEN,
                detail=f"Requires role(s): {', '.join(sorted(required_set))}",
            )
        return principal

    return _dep
