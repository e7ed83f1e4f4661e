"""Account, statistics, export and erasure routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from moody.api.deps import current_user_id, get_services
from moody.api.schemas import RegisterRequest, SettingsUpdateRequest
from moody.models import ExportFormat
from moody.privacy.erasure import erase_user
from moody.privacy.export import export_user_data
from moody.privacy.retention import purge_expired
from moody.services import Services

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201, summary="Register an account")
async def register(req: RegisterRequest, services: Services = Depends(get_services)):
    account = await services.users.create(
        email=req.email,
        credential=req.credential,
        consented=req.consented,
        retention_days=services.settings.default_retention_days,
        export_format=ExportFormat(services.settings.default_export_format),
    )
    return account.model_dump(mode="json")


@router.get("/profile", summary="Identity metadata (no credential)")
async def profile(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    account = await services.users.get(user_id)
    return account.model_dump(mode="json")


@router.get("/settings")
async def get_settings(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    prefs = await services.user_settings.get(user_id)
    return prefs.model_dump(mode="json")


@router.put("/settings")
async def update_settings(
    req: SettingsUpdateRequest,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    prefs = await services.user_settings.update(
        user_id,
        data_retention_days=req.data_retention_days,
        export_format=req.export_format,
    )
    return prefs.model_dump(mode="json")


@router.get("/stats", summary="All-time averages")
async def stats(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    summary = await services.stats.stats(user_id)
    return summary.model_dump(mode="json")


@router.get("/export", summary="Download the full history")
async def export(
    format: str | None = Query(None, description="json or csv; defaults to the user's setting"),
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    payload = await export_user_data(
        user_id,
        format,
        users=services.users,
        entries=services.entries,
        settings=services.user_settings,
    )
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.delete("/data", summary="Erase the account and all derived data")
async def erase(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    report = await erase_user(services.db, user_id)
    return {
        "message": "All user data deleted successfully",
        "entries_deleted": report.entries_deleted,
    }


@router.post("/retention/purge", summary="Apply the retention setting now")
async def purge(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    deleted = await purge_expired(
        user_id, entries=services.entries, settings=services.user_settings
    )
    return {"deleted": deleted}
