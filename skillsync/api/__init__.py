"""SkillSync REST API — FastAPI application factory."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skillsync.api.deps import (
    dispose_engine,
    get_credential_broker,
    get_inference_queue,
    get_inference_runner,
    get_installation_service,
    get_sync_orchestrator,
    init_session_factory,
)
from skillsync.api.errors import register_error_handlers
from skillsync.api.middleware.request_id import RequestIDMiddleware
from skillsync.api.routers import identities, skills, sync, webhooks
from skillsync.core.logging import setup_logging
from skillsync.scheduler import create_scheduler


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: init DB, start background loops. Shutdown: stop loops, dispose engine."""
    factory = init_session_factory()
    scheduler = create_scheduler(
        factory,
        installation_service=get_installation_service(),
        orchestrator=get_sync_orchestrator(),
        inference_runner=get_inference_runner(),
        inference_queue=get_inference_queue(),
        broker_factory=get_credential_broker,
    )
    if os.environ.get("SKILLSYNC_SCHEDULER_ENABLED", "true").lower() != "false":
        await scheduler.start()
    yield
    await scheduler.stop()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="SkillSync",
        docs_url="/api/v1/docs",
        openapi_url="/api/v1/openapi.json",
        lifespan=_lifespan,
    )

    register_error_handlers(app)

    cors_origins = os.environ.get("SKILLSYNC_CORS_ORIGINS", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(sync.router, prefix="/api/v1/github/sync", tags=["sync"])
    app.include_router(webhooks.router, prefix="/api/v1/github/webhooks", tags=["webhooks"])
    app.include_router(identities.router, prefix="/api/v1/identities", tags=["identities"])
    app.include_router(skills.router, prefix="/api/v1/employees", tags=["skills"])

    return app
