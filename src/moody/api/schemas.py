"""Request models shared across API route modules."""

from __future__ import annotations

from pydantic import BaseModel

from moody.analysis.models import Detection
from moody.models import ExportFormat


class MoodEntryRequest(BaseModel):
    # Bounds are enforced by the event store so that out-of-range values
    # surface as a 400 with the offending field named.
    happiness: float
    stress: float
    valence: float
    arousal: float
    confidence: float


class AnalyzeRequest(BaseModel):
    """Per-face detections computed in the browser."""
    detections: list[Detection]


class RegisterRequest(BaseModel):
    email: str
    credential: str  # issued by the auth service, stored opaquely
    consented: bool


class SettingsUpdateRequest(BaseModel):
    data_retention_days: int | None = None
    export_format: ExportFormat | None = None
