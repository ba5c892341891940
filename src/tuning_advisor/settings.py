"""
tuning_advisor.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Strict env-driven configuration with defaults safe for local dev.
    """

    model_config = SettingsConfigDict(env_prefix="TA_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "tuning-advisor"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "tuning-advisor"
    jwt_audience: str = "tuning-advisor-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    # Clock skew tolerated on exp/iat between token issuer and this service.
    jwt_leeway_seconds: int = Field(default=30, ge=0)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./tuning_advisor.db"

    # Advisory pipeline
    # "gate": unwaived errors pause the run for a reviewer; "report": never pause.
    review_mode: Literal["gate", "report"] = "gate"
    duplicate_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    max_upload_bytes: int = 1_000_000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Every layer reads configuration through `get_settings()`; tests construct
# `Settings(...)` directly and pass it to `create_app`.
