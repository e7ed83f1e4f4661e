"""Application entrypoint — start the API server or run one-off commands."""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog
import uvicorn

from moody.config import Settings, get_settings
from moody.errors import MoodError
from moody.logger import setup_logging
from moody.privacy.erasure import erase_user
from moody.privacy.export import export_to_file
from moody.privacy.retention import purge_expired
from moody.services import build_services

logger = structlog.get_logger(__name__)


async def _init_db(settings: Settings) -> None:
    services = build_services(settings)
    try:
        await services.db.init()
    finally:
        await services.db.dispose()


async def _export(settings: Settings, user_id: int, fmt: str | None, output: str) -> str:
    services = build_services(settings)
    try:
        path = await export_to_file(
            user_id,
            output,
            fmt,
            users=services.users,
            entries=services.entries,
            settings=services.user_settings,
        )
    finally:
        await services.db.dispose()
    return str(path)


async def _erase(settings: Settings, user_id: int) -> int:
    services = build_services(settings)
    try:
        report = await erase_user(services.db, user_id)
    finally:
        await services.db.dispose()
    return report.entries_deleted


async def _purge(settings: Settings, user_id: int) -> int:
    services = build_services(settings)
    try:
        return await purge_expired(
            user_id, entries=services.entries, settings=services.user_settings
        )
    finally:
        await services.db.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="moody",
        description="Selfie-based mood tracking service.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── init-db ───────────────────────────────────────────────
    sub.add_parser("init-db", help="Create database tables.")

    # ── export ────────────────────────────────────────────────
    export_parser = sub.add_parser("export", help="Write a user's full history to a file.")
    export_parser.add_argument("--user-id", type=int, required=True)
    export_parser.add_argument("--format", choices=["json", "csv"], default=None)
    export_parser.add_argument("--output", required=True)

    # ── erase ─────────────────────────────────────────────────
    erase_parser = sub.add_parser("erase", help="Irreversibly delete a user and all data.")
    erase_parser.add_argument("--user-id", type=int, required=True)

    # ── purge-expired ─────────────────────────────────────────
    purge_parser = sub.add_parser("purge-expired", help="Apply a user's retention setting.")
    purge_parser.add_argument("--user-id", type=int, required=True)

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        if args.command == "serve":
            uvicorn.run(
                "moody.api.server:app",
                host=args.host or settings.api_host,
                port=args.port or settings.api_port,
                reload=args.reload,
            )
        elif args.command == "init-db":
            asyncio.run(_init_db(settings))
            print("Database tables created.")
        elif args.command == "export":
            path = asyncio.run(_export(settings, args.user_id, args.format, args.output))
            print(f"Export written to {path}")
        elif args.command == "erase":
            deleted = asyncio.run(_erase(settings, args.user_id))
            print(f"User {args.user_id} erased ({deleted} mood entries).")
        elif args.command == "purge-expired":
            deleted = asyncio.run(_purge(settings, args.user_id))
            print(f"Purged {deleted} expired entries.")
        else:
            parser.print_help()
            sys.exit(1)
    except MoodError as exc:
        logger.error("cli.failed", command=args.command, error=exc.message)
        print(f"error: {exc.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
