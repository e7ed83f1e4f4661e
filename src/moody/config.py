"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _resolve_db_dir() -> Path:
    """Return the directory that holds the SQLite file."""
    override = os.getenv("MOODY_DATA_DIR")
    return Path(override) if override else _PROJECT_ROOT / "data"


_DEFAULT_DB_URL = f"sqlite+aiosqlite:///{_resolve_db_dir() / 'moody.db'}"


class Settings(BaseSettings):
    """All runtime configuration for the mood tracking service.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in a flat namespace;
    no nested prefixes are used.
    """

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────
    database_url: str = _DEFAULT_DB_URL
    database_echo: bool = False

    # ── API server ────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = int(os.getenv("PORT", "8000"))
    api_secret_key: str = "change-me-to-a-random-secret"

    # ── CORS ──────────────────────────────────────────────────
    cors_origins: str = "*"  # comma-separated origins, or "*" for all

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ── Mood entries ──────────────────────────────────────────
    default_page_size: int = 20
    max_page_size: int = 100
    allow_fallback_analysis: bool = False  # random bounded metrics when no detector

    # ── Privacy ───────────────────────────────────────────────
    default_retention_days: int = 365
    default_export_format: Literal["json", "csv"] = "json"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
