"""Full-history data export (JSON or CSV) for portability requests."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

import structlog

from moody.errors import ValidationError
from moody.models import ExportFormat, MoodEntry, UserAccount
from moody.storage.repository import MoodEntryRepository, SettingsRepository, UserRepository

logger = structlog.get_logger(__name__)

CSV_COLUMNS = ["timestamp", "happiness", "stress", "valence", "arousal", "confidence"]

_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
}


@dataclass(frozen=True)
class ExportPayload:
    content: bytes
    format: ExportFormat
    total_entries: int

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self.format]

    @property
    def filename(self) -> str:
        return f"moody-data.{self.format.value}"


def parse_format(fmt: str | ExportFormat) -> ExportFormat:
    try:
        return ExportFormat(fmt)
    except ValueError:
        raise ValidationError(f"Invalid format {fmt!r}. Must be json or csv") from None


def render_json(account: UserAccount, entries: Sequence[MoodEntry], exported_at: datetime) -> bytes:
    """Identity metadata, every entry oldest first, export time and count."""
    document = {
        "user": account.model_dump(mode="json"),
        "mood_entries": [
            {
                "id": e.id,
                "happiness": e.happiness,
                "stress": e.stress,
                "valence": e.valence,
                "arousal": e.arousal,
                "confidence": e.confidence,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in entries
        ],
        "exported_at": exported_at.isoformat(),
        "total_entries": len(entries),
    }
    return json.dumps(document, indent=2).encode("utf-8")


def render_csv(entries: Sequence[MoodEntry]) -> bytes:
    """Header row then one row per entry, oldest first."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for e in entries:
        writer.writerow([
            e.timestamp.isoformat(), e.happiness, e.stress,
            e.valence, e.arousal, e.confidence,
        ])
    return buf.getvalue().encode("utf-8")


async def export_user_data(
    user_id: int,
    fmt: str | ExportFormat | None = None,
    *,
    users: UserRepository,
    entries: MoodEntryRepository,
    settings: SettingsRepository,
) -> ExportPayload:
    """Serialize a user's complete history.

    Ignores the trend window: every stored entry is included.  When *fmt*
    is omitted the user's preferred export format is used.
    """
    account = await users.get(user_id)
    if fmt is None:
        resolved = (await settings.get(user_id)).export_format
    else:
        resolved = parse_format(fmt)

    rows = await entries.all_for_user(user_id)
    if resolved is ExportFormat.JSON:
        content = render_json(account, rows, entries.now())
    else:
        content = render_csv(rows)

    logger.info("export.generated", user_id=user_id, format=resolved.value, rows=len(rows))
    return ExportPayload(content=content, format=resolved, total_entries=len(rows))


async def export_to_file(
    user_id: int,
    output_path: str | Path,
    fmt: str | ExportFormat | None = None,
    *,
    users: UserRepository,
    entries: MoodEntryRepository,
    settings: SettingsRepository,
) -> Path:
    """Write :func:`export_user_data` output to *output_path*.

    Returns the resolved output path.
    """
    payload = await export_user_data(
        user_id, fmt, users=users, entries=entries, settings=settings
    )
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(payload.content)
    logger.info("export.file_written", path=str(output), rows=payload.total_entries)
    return output
