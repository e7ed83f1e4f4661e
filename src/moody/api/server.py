"""FastAPI application — mood capture, trends, export and erasure.

This module wires together all infrastructure:
- CORS + API key auth middleware
- Error kind → status code mapping
- Storage handle created at startup and disposed at shutdown
- Mood entry, trend, stats, export and erasure routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from moody.analysis.models import ExpressionDetector
from moody.api.middleware import setup_middleware
from moody.api.routes.mood import router as mood_router
from moody.api.routes.users import router as users_router
from moody.config import Settings, get_settings
from moody.services import build_services

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    detector: ExpressionDetector | None = None,
) -> FastAPI:
    """Build the application.  Storage is opened in the lifespan, not here."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hooks."""
        services = build_services(settings, detector=detector)
        await services.db.init()
        app.state.services = services
        logger.info("server.started", port=settings.api_port)

        yield  # ← application runs

        app.state.services = None
        await services.db.dispose()
        logger.info("server.stopped")

    app = FastAPI(
        title="Moody API",
        description="Selfie-based mood tracking that stores only derived metrics.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────
    setup_middleware(app, settings)

    # ── Routers ───────────────────────────────────────────────
    app.include_router(mood_router)
    app.include_router(users_router)

    # ── Health ────────────────────────────────────────────────
    @app.get("/health", tags=["system"])
    async def health(request: Request):
        ready = getattr(request.app.state, "services", None) is not None
        return {"status": "ok", "storage_ready": ready}

    return app


app = create_app()
