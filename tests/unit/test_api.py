"""Unit tests for the HTTP API."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from equiscope.analytics import RaceAnalyticsService
from equiscope.chat import RagChatService
from equiscope.main import app


@pytest.fixture
async def client(session_factory, registry, builder, repository):
    app.state.vector_registry = registry
    app.state.document_builder = builder
    app.state.chat = RagChatService(session_factory, registry, builder)
    app.state.analytics = RaceAnalyticsService(repository)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await registry.close_all()


class TestRaceEndpoints:
    """Tests for /api/races and /api/vectors."""

    @pytest.mark.asyncio
    async def test_charts(self, client, seeded_race):
        resp = await client.get(f"/api/races/{seeded_race}/charts")
        assert resp.status_code == 200
        data = resp.json()
        assert data["race_overview"]["runner_count"] == 3
        assert len(data["charts"]) == 63

    @pytest.mark.asyncio
    async def test_charts_unknown_race(self, client):
        resp = await client.get("/api/races/20251212_R9_C9/charts")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_charts_invalid_guid(self, client):
        resp = await client.get("/api/races/not-a-race/charts")
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_ingest(self, client, seeded_race):
        resp = await client.post(f"/api/races/{seeded_race}/vectors")
        assert resp.status_code == 200
        assert resp.json() == {"race_guid": seeded_race, "documents": 4}

    @pytest.mark.asyncio
    async def test_ingest_upstream_down(self, client, registry, failing_embedder, seeded_race):
        registry.embedder = failing_embedder
        resp = await client.post(f"/api/races/{seeded_race}/vectors")
        assert resp.status_code == 503

    @pytest.mark.asyncio
    async def test_cleanup(self, client):
        resp = await client.post("/api/vectors/cleanup", json={"retention_days": 2})
        assert resp.status_code == 200
        assert resp.json() == {"removed": 0, "retention_days": 2}

    @pytest.mark.asyncio
    async def test_cleanup_rejects_negative_retention(self, client):
        resp = await client.post("/api/vectors/cleanup", json={"retention_days": -1})
        assert resp.status_code == 400


class TestChatEndpoints:
    """Tests for /api/chat."""

    @pytest.mark.asyncio
    async def test_session_round_trip(self, client, seeded_race):
        resp = await client.post("/api/chat/sessions", json={"race_guid": seeded_race})
        assert resp.status_code == 200
        session = resp.json()
        assert session["current_race_guid"] == seeded_race

        resp = await client.post(
            f"/api/chat/sessions/{session['id']}/messages",
            json={"text": "Quelle est la distance ?"},
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Distance: 2100m"

        resp = await client.get(f"/api/chat/sessions/{session['id']}")
        assert [m["role"] for m in resp.json()["messages"]] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_create_session_without_body(self, client):
        resp = await client.post("/api/chat/sessions")
        assert resp.status_code == 200
        assert resp.json()["id"].startswith("session_")

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        assert (await client.get("/api/chat/sessions/missing")).status_code == 404
        resp = await client.post("/api/chat/sessions/missing/messages", json={"text": "Bonjour"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_message(self, client):
        session = (await client.post("/api/chat/sessions")).json()
        resp = await client.post(f"/api/chat/sessions/{session['id']}/messages", json={"text": "  "})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_race_context(self, client):
        resp = await client.post("/api/chat/sessions", json={"race_guid": "R4_C1"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"


class TestCleanupScheduler:
    """Tests for the daily cleanup job."""

    @pytest.mark.asyncio
    async def test_run_cleanup_uses_retention(self):
        from equiscope.scheduler import CleanupScheduler

        registry = AsyncMock()
        registry.cleanup.return_value = 3
        job = CleanupScheduler(registry, hour=4, retention_days=2)
        assert await job.run_cleanup() == 3
        registry.cleanup.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_run_cleanup_swallows_errors(self):
        from equiscope.scheduler import CleanupScheduler

        registry = AsyncMock()
        registry.cleanup.side_effect = OSError("disk")
        assert await CleanupScheduler(registry).run_cleanup() == 0

    @pytest.mark.asyncio
    async def test_start_registers_daily_job(self):
        from equiscope.scheduler import CleanupScheduler

        job = CleanupScheduler(AsyncMock(), hour=4)
        await job.start()
        try:
            scheduled = job.scheduler.get_job("vector_cleanup")
            assert scheduled is not None
            assert "hour='4'" in str(scheduled.trigger)
        finally:
            await job.stop()
