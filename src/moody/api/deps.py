"""FastAPI dependencies — service container and current-user resolution."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from moody.services import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(503, "Service not ready.")
    return services


def current_user_id(x_user_id: str | None = Header(None, alias="X-User-ID")) -> int:
    """Resolve the authenticated user id.

    The session layer in front of this service authenticates the caller and
    forwards its id in ``X-User-ID``; the value is trusted as-is.  Row
    ownership is still checked on every entry operation.
    """
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-ID header.")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(401, "Invalid X-User-ID header.") from None
