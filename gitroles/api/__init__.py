"""gitroles operator API — FastAPI application factory."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from gitroles.api.deps import (
    build_role_sync_runner,
    dispose_engine,
    init_session_factory,
    set_scheduler,
)
from gitroles.api.errors import register_error_handlers
from gitroles.api.middleware.request_id import RequestIDMiddleware
from gitroles.api.routers import accounts, guilds, sync
from gitroles.core.logging import setup_logging
from gitroles.engines.role_sync.discord_client import DiscordClient
from gitroles.engines.role_sync.github_client import GitHubClient
from gitroles.scheduler import create_scheduler

log = structlog.get_logger("gitroles.api")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: init DB, start the sync scheduler. Shutdown: stop and dispose."""
    factory = init_session_factory()
    github_client = GitHubClient()
    discord_client: DiscordClient | None = None
    scheduler = None

    if os.environ.get("DISCORD_TOKEN"):
        discord_client = DiscordClient()
        runner = build_role_sync_runner(factory, github_client, discord_client)
        scheduler = create_scheduler(factory, runner)
        set_scheduler(scheduler)
        await scheduler.start()
    else:
        log.warning("scheduler.disabled", reason="DISCORD_TOKEN is not set")

    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
            set_scheduler(None)
        if discord_client is not None:
            await discord_client.close()
        await github_client.close()
        await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="gitroles",
        docs_url="/api/v1/docs",
        openapi_url="/api/v1/openapi.json",
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(sync.router, prefix="/api/v1/sync", tags=["sync"])
    app.include_router(guilds.router, prefix="/api/v1/guilds", tags=["guilds"])
    app.include_router(accounts.router, prefix="/api/v1/accounts", tags=["accounts"])

    return app
