"""Middleware — CORS, API key authentication, request logging, error handling."""

from __future__ import annotations

import time
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from moody.config import Settings
from moody.errors import FatalConsistencyError, MoodError

logger = structlog.get_logger(__name__)


# ── CORS ──────────────────────────────────────────────────────


def add_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS from ``settings.cors_origins`` (comma-separated or ``"*"``)."""
    origins_raw = settings.cors_origins.strip()

    if origins_raw == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in origins_raw.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


# ── API key authentication ────────────────────────────────────

_PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Verify ``X-API-Key`` or ``Authorization: Bearer <key>`` on protected routes.

    Disabled when ``api_secret_key`` is the default placeholder.
    """

    def __init__(self, app, secret_key: str) -> None:
        super().__init__(app)
        self._secret_key = secret_key

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._secret_key in ("change-me-to-a-random-secret", ""):
            return await call_next(request)

        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        api_key = (
            request.headers.get("X-API-Key")
            or _extract_bearer(request.headers.get("Authorization", ""))
        )

        if api_key != self._secret_key:
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid or missing API key."},
            )

        return await call_next(request)


# ── Request logging ───────────────────────────────────────────


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request method, path, status, and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        if request.url.path != "/health":
            logger.info(
                "http.request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=duration_ms,
            )
        return response


# ── Global error handler ─────────────────────────────────────


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return a clean 500 response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("http.unhandled_error", path=request.url.path, error=str(exc))
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error."},
            )


# ── Error kinds → status codes ───────────────────────────────


async def _mood_error_handler(request: Request, exc: MoodError) -> JSONResponse:
    if isinstance(exc, FatalConsistencyError):
        logger.error("http.fatal_consistency", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(
        status_code=400,
        content={"detail": f"{location}: {first.get('msg', 'invalid request')}"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MoodError, _mood_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)


# ── Setup helper ──────────────────────────────────────────────


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Wire all middleware into the FastAPI application.

    Order matters — outermost middleware runs first:
    1. Error handler (catch everything)
    2. Request logging
    3. API key auth
    4. CORS (handled by Starlette's built-in middleware)
    """
    # Add from innermost → outermost (FastAPI reverses the stack)
    add_cors(app, settings)
    app.add_middleware(APIKeyMiddleware, secret_key=settings.api_secret_key)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    register_exception_handlers(app)


# ── Helpers ───────────────────────────────────────────────────


def _extract_bearer(auth_header: str) -> str:
    """Extract token from ``Bearer <token>`` header."""
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return ""
