"""
tuning_advisor.auth.jwt

Bearer token minting and verification.

Responsibilities:
- Mint short-lived HS256 tokens carrying the caller's advisor roles (dev/test).
- Verify signature and registered claims, then map the token onto a `Principal`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from tuning_advisor.auth.models import KNOWN_ROLES, Principal
from tuning_advisor.settings import Settings

REQUIRED_CLAIMS = ("exp", "iat", "iss", "aud", "sub")


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    audience: str
    secret: str
    leeway: timedelta = timedelta(0)

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
            leeway=timedelta(seconds=settings.jwt_leeway_seconds),
        )


class JwtValidationError(Exception):
    pass


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    roles: Iterable[str],
    ttl: timedelta = timedelta(hours=1),
) -> str:
    role_list = sorted(set(roles))
    unknown = [r for r in role_list if r not in KNOWN_ROLES]
    if unknown:
        raise ValueError(f"unknown role(s): {', '.join(unknown)}")

    now = datetime.now(tz=UTC)
    claims: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "roles": role_list,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(claims, cfg.secret, algorithm=cfg.alg)


def decode_principal(*, cfg: JwtConfig, token: str) -> Principal:
    try:
        claims = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            leeway=cfg.leeway,
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise JwtValidationError("empty subject")
    roles = claims.get("roles", [])
    if not isinstance(roles, list):
        raise JwtValidationError("roles claim must be a list")
    # Roles this service does not know are dropped rather than rejected.
    return Principal(subject=subject, roles=frozenset(str(r) for r in roles) & KNOWN_ROLES)
