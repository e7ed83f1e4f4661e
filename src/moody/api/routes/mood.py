"""Mood entry, analysis and trend routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from moody.api.deps import current_user_id, get_services
from moody.api.schemas import AnalyzeRequest, MoodEntryRequest
from moody.errors import EntryNotFound
from moody.models import MoodMetric
from moody.services import Services

router = APIRouter(prefix="/mood", tags=["mood"])


@router.post("/entries", status_code=201)
async def create_entry(
    req: MoodEntryRequest,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    """Store metrics the client already derived."""
    entry_id = await services.entries.insert(user_id, MoodMetric(**req.model_dump()))
    return {"id": entry_id, "message": "Mood entry created successfully"}


@router.post("/capture", status_code=201)
async def capture_selfie(
    image: UploadFile = File(...),
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    """Run the server-side detector on an uploaded selfie and store the metrics.

    The image is read into memory for detection only; it is never written
    to disk or stored.
    """
    contents = await image.read()
    entry_id, metric = await services.capture.capture(user_id, contents)
    return {"id": entry_id, "metrics": metric.model_dump()}


@router.post("/analyze", status_code=201)
async def analyze_detections(
    req: AnalyzeRequest,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    """Derive and store metrics from browser-side face detections.

    An empty ``detections`` list means no face was found and yields 422.
    """
    entry_id, metric = await services.capture.record_detections(user_id, req.detections)
    return {"id": entry_id, "metrics": metric.model_dump()}


@router.get("/entries")
async def list_entries(
    page: int = 1,
    limit: int | None = None,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    settings = services.settings
    limit = settings.default_page_size if limit is None else min(limit, settings.max_page_size)
    result = await services.entries.list_page(user_id, page=page, limit=limit)
    return {
        "entries": [e.model_dump(mode="json", exclude={"user_id"}) for e in result.entries],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "total_pages": result.total_pages,
        },
    }


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: int,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    deleted = await services.entries.delete(user_id, entry_id)
    if not deleted:
        raise EntryNotFound("Mood entry not found")
    return {"id": entry_id, "deleted": True}


@router.delete("/entries")
async def delete_all_entries(
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    count = await services.entries.delete_all(user_id)
    return {"deleted": count}


@router.get("/trends/{period}")
async def get_trends(
    period: str,
    user_id: int = Depends(current_user_id),
    services: Services = Depends(get_services),
):
    """Per-day, ISO-week or month averages over the last 30 days."""
    series = await services.trends.trend(user_id, period)
    return series.model_dump(mode="json")
