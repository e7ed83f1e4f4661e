"""Tests for the FastAPI server endpoints."""

from contextlib import asynccontextmanager

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from conftest import StubDetector
from moody.analysis.models import Detection, ExpressionScores
from moody.api.server import create_app
from moody.config import Settings


@asynccontextmanager
async def _serve(tmp_path, *, detector=None, **overrides):
    """Run the app with its lifespan and yield ``(app, client)``."""
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        api_secret_key="",
        **overrides,
    )
    app = create_app(settings, detector=detector)
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield app, c


@pytest.fixture
async def client(tmp_path):
    """Async test client with lifespan (startup / shutdown) fully executed."""
    async with _serve(tmp_path) as (_, c):
        yield c


async def _register(client: AsyncClient, email: str) -> dict[str, str]:
    resp = await client.post(
        "/users", json={"email": email, "credential": "opaque", "consented": True}
    )
    assert resp.status_code == 201
    return {"X-User-ID": str(resp.json()["id"])}


def _metric(**overrides) -> dict:
    body = {"happiness": 0.5, "stress": 0.2, "valence": 0.1, "arousal": 0.4, "confidence": 0.9}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "storage_ready": True}


@pytest.mark.asyncio
async def test_register_conflict_and_consent(client: AsyncClient):
    await _register(client, "dana@example.com")

    resp = await client.post(
        "/users", json={"email": "dana@example.com", "credential": "x", "consented": True}
    )
    assert resp.status_code == 409

    resp = await client.post(
        "/users", json={"email": "eve@example.com", "credential": "x", "consented": False}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_missing_user_header(client: AsyncClient):
    resp = await client.get("/mood/entries")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_entry_lifecycle(client: AsyncClient):
    headers = await _register(client, "frank@example.com")

    resp = await client.post("/mood/entries", json=_metric(happiness=0.2), headers=headers)
    assert resp.status_code == 201
    first_id = resp.json()["id"]
    resp = await client.post("/mood/entries", json=_metric(happiness=0.8), headers=headers)
    assert resp.status_code == 201

    resp = await client.get("/mood/entries", params={"page": 1, "limit": 10}, headers=headers)
    body = resp.json()
    assert body["pagination"]["total"] == 2
    assert len(body["entries"]) == 2

    resp = await client.get("/mood/trends/daily", headers=headers)
    assert resp.status_code == 200
    buckets = resp.json()["buckets"]
    assert sum(b["count"] for b in buckets) == 2

    resp = await client.delete(f"/mood/entries/{first_id}", headers=headers)
    assert resp.status_code == 200
    resp = await client.delete(f"/mood/entries/{first_id}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_out_of_range_rejected(client: AsyncClient):
    headers = await _register(client, "gina@example.com")

    resp = await client.post("/mood/entries", json=_metric(happiness=1.5), headers=headers)
    assert resp.status_code == 400
    assert "happiness" in resp.json()["detail"]

    resp = await client.get("/mood/entries", headers=headers)
    assert resp.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_malformed_body_is_400(client: AsyncClient):
    headers = await _register(client, "hal@example.com")
    resp = await client.post("/mood/entries", json={"happiness": "lots"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_cross_user_delete_refused(client: AsyncClient):
    owner = await _register(client, "ivy@example.com")
    intruder = await _register(client, "jack@example.com")

    resp = await client.post("/mood/entries", json=_metric(), headers=owner)
    entry_id = resp.json()["id"]

    resp = await client.delete(f"/mood/entries/{entry_id}", headers=intruder)
    assert resp.status_code == 404

    resp = await client.get("/mood/entries", headers=owner)
    assert resp.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_analyze_detections(client: AsyncClient):
    headers = await _register(client, "kim@example.com")

    resp = await client.post("/mood/analyze", json={"detections": []}, headers=headers)
    assert resp.status_code == 422

    detection = {
        "expressions": {"happy": 0.9, "neutral": 0.1},
        "confidence": 0.88,
    }
    resp = await client.post("/mood/analyze", json={"detections": [detection]}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["metrics"]["happiness"] == 0.9


@pytest.mark.asyncio
async def test_invalid_trend_period(client: AsyncClient):
    headers = await _register(client, "lee@example.com")
    resp = await client.get("/mood/trends/yearly", headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_stats_export_and_erase(client: AsyncClient):
    headers = await _register(client, "max@example.com")

    resp = await client.get("/users/stats", headers=headers)
    assert resp.json()["total_entries"] == 0
    assert resp.json()["first_entry"] is None

    for value in (0.3, 0.6, 0.9):
        await client.post("/mood/entries", json=_metric(happiness=value), headers=headers)

    resp = await client.get("/users/stats", headers=headers)
    assert resp.json()["total_entries"] == 3
    assert resp.json()["averages"]["happiness"] == 0.6

    resp = await client.get("/users/export", params={"format": "csv"}, headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "moody-data.csv" in resp.headers["content-disposition"]
    assert len(resp.text.splitlines()) == 4

    resp = await client.get("/users/export", headers=headers)
    assert resp.json()["total_entries"] == 3

    resp = await client.delete("/users/data", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["entries_deleted"] == 3

    resp = await client.get("/users/profile", headers=headers)
    assert resp.status_code == 404
    resp = await client.delete("/users/data", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_settings_and_purge(client: AsyncClient):
    headers = await _register(client, "noor@example.com")

    resp = await client.put(
        "/users/settings",
        json={"data_retention_days": 90, "export_format": "csv"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data_retention_days"] == 90

    resp = await client.put("/users/settings", json={"data_retention_days": 0}, headers=headers)
    assert resp.status_code == 400

    resp = await client.post("/users/retention/purge", headers=headers)
    assert resp.json() == {"deleted": 0}


# ── Server-side capture ───────────────────────────────────────


@pytest.mark.asyncio
async def test_capture_runs_detector_on_upload(tmp_path):
    detector = StubDetector(
        [Detection(expressions=ExpressionScores(happy=0.6, sad=0.1), confidence=0.97)]
    )
    async with _serve(tmp_path, detector=detector) as (_, client):
        headers = await _register(client, "olga@example.com")
        resp = await client.post(
            "/mood/capture",
            files={"image": ("selfie.jpg", b"\xff\xd8jpeg-bytes", "image/jpeg")},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["metrics"]["happiness"] == 0.6
        assert detector.images == [b"\xff\xd8jpeg-bytes"]

        resp = await client.get("/mood/entries", headers=headers)
        assert resp.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_capture_without_face_is_422(tmp_path):
    async with _serve(tmp_path, detector=StubDetector([])) as (_, client):
        headers = await _register(client, "pat@example.com")
        resp = await client.post(
            "/mood/capture",
            files={"image": ("selfie.jpg", b"frame", "image/jpeg")},
            headers=headers,
        )
        assert resp.status_code == 422

        resp = await client.get("/mood/entries", headers=headers)
        assert resp.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_capture_uses_fallback_when_enabled(tmp_path):
    async with _serve(tmp_path, allow_fallback_analysis=True) as (_, client):
        headers = await _register(client, "quinn@example.com")
        resp = await client.post(
            "/mood/capture",
            files={"image": ("selfie.jpg", b"frame", "image/jpeg")},
            headers=headers,
        )
        assert resp.status_code == 201
        metrics = resp.json()["metrics"]
        assert 0.1 <= metrics["happiness"] <= 0.9
        assert 0.7 <= metrics["confidence"] <= 1.0


# ── Fatal storage errors ──────────────────────────────────────


@pytest.mark.asyncio
async def test_failed_erasure_is_500_and_keeps_data(tmp_path):
    async with _serve(tmp_path) as (app, client):
        headers = await _register(client, "rosa@example.com")
        await client.post("/mood/entries", json=_metric(), headers=headers)

        async with app.state.services.db.engine.begin() as conn:
            await conn.execute(text("DROP TABLE user_settings"))

        resp = await client.delete("/users/data", headers=headers)
        assert resp.status_code == 500
        assert "operator attention" in resp.json()["detail"]

        resp = await client.get("/mood/entries", headers=headers)
        assert resp.json()["pagination"]["total"] == 1
