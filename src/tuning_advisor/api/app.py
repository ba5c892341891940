"""
tuning_advisor.api.app

FastAPI app factory for the tuning advisor service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Map domain exceptions onto HTTP responses.
- Initialise and dispose shared infrastructure (DB engine/session factory).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from tuning_advisor import __version__
from tuning_advisor.advisory.sources import ConfigParseError
from tuning_advisor.api.routers.advisory import router as advisory_router
from tuning_advisor.api.routers.assessments import router as assessments_router
from tuning_advisor.api.routers.dev_auth import router as dev_auth_router
from tuning_advisor.api.routers.guides import router as guides_router
from tuning_advisor.api.routers.health import router as health_router
from tuning_advisor.api.routers.runs import router as runs_router
from tuning_advisor.db.init_db import init_db
from tuning_advisor.db.session import create_engine, create_sessionmaker
from tuning_advisor.observability.logging import configure_logging, get_logger
from tuning_advisor.observability.middleware import RequestContextMiddleware
from tuning_advisor.services.assessment_service import NotFoundError, RunStateError
from tuning_advisor.settings import Settings

log = get_logger(__name__)

# Starlette renamed the 422 constant; the number is stable.
UNPROCESSABLE = 422


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env, review_mode=settings.review_mode)
        # Engine and session factory live on app.state; routers reach them via `api.deps`.
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod schema is managed by Alembic migrations.
            await init_db(engine)
        try:
            yield
        finally:
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Spring Boot / PostgreSQL Tuning Advisor",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(assessments_router)
    app.include_router(runs_router)
    app.include_router(advisory_router)
    app.include_router(guides_router)

    @app.exception_handler(ConfigParseError)
    async def _config_parse_error(request: Request, exc: ConfigParseError) -> JSONResponse:
        return JSONResponse(
            status_code=UNPROCESSABLE,
            content={"detail": str(exc), "source": exc.source, "line": exc.line},
        )

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=UNPROCESSABLE, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(RunStateError)
    async def _run_state(request: Request, exc: RunStateError) -> JSONResponse:
        return JSONResponse(status_code=HTTP_409_CONFLICT, content={"detail": str(exc)})

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; business logic stays in routers/services/orchestrator.
