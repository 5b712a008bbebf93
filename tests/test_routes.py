import pytest
import pytest_asyncio
import httpx
from datetime import datetime, timezone

from habitsync.config import settings
from habitsync.db import session_dependency
from habitsync.main import app

DEBUG_HEADERS = {"X-TG-INIT-DATA": "debug-mode"}

@pytest_asyncio.fixture
async def client(db_session, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_DEBUG_AUTH", True)

    async def override_session():
        yield db_session

    app.dependency_overrides[session_dependency] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()

@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

@pytest.mark.asyncio
async def test_requests_without_init_data_are_unauthorized(client):
    resp = await client.get("/bootstrap")
    assert resp.status_code == 401

@pytest.mark.asyncio
async def test_debug_auth_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_DEBUG_AUTH", False)
    resp = await client.get("/bootstrap", headers=DEBUG_HEADERS)
    assert resp.status_code == 401

@pytest.mark.asyncio
async def test_signed_init_data_creates_user(client, monkeypatch, sign_init_data):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "42:ROUTE-TEST")
    raw = sign_init_data("42:ROUTE-TEST", datetime.now(timezone.utc), {"id": 31337, "first_name": "Bo"})

    resp = await client.get("/bootstrap", headers={"Authorization": f"tma {raw}"})

    assert resp.status_code == 200
    assert resp.json()["user"]["telegram_id"] == 31337

@pytest.mark.asyncio
async def test_checkin_cycle_over_http(client):
    created = await client.post("/habits", json={"title": "Stretch", "type": "boolean"}, headers=DEBUG_HEADERS)
    assert created.status_code == 200
    habit_id = created.json()["habit"]["id"]

    done = await client.post("/check-in", json={"habitId": habit_id, "status": "done"}, headers=DEBUG_HEADERS)
    assert done.status_code == 200
    body = done.json()
    assert body["status"] == "done"
    assert body["rewardDelta"] == 10

    again = await client.post("/check-in", json={"habitId": habit_id, "status": "done"}, headers=DEBUG_HEADERS)
    assert again.json()["rewardDelta"] == 0

    boot = (await client.get("/bootstrap", headers=DEBUG_HEADERS)).json()
    assert boot["todayCheckins"] == {str(habit_id): "done"}
    assert boot["habits"][0]["streak"] == 1

    undo = await client.post("/check-in/undo", json={"habitId": habit_id}, headers=DEBUG_HEADERS)
    assert undo.status_code == 200
    boot = (await client.get("/bootstrap", headers=DEBUG_HEADERS)).json()
    assert boot["todayCheckins"] == {}

@pytest.mark.asyncio
async def test_checkin_errors(client):
    missing = await client.post("/check-in", json={"habitId": 999, "status": "done"}, headers=DEBUG_HEADERS)
    assert missing.status_code == 404

    invalid = await client.post("/check-in", json={"habitId": 1, "status": "maybe"}, headers=DEBUG_HEADERS)
    assert invalid.status_code == 422

@pytest.mark.asyncio
async def test_habit_crud_and_reorder(client):
    a = (await client.post("/habits", json={"title": "A"}, headers=DEBUG_HEADERS)).json()["habit"]
    b = (await client.post("/habits", json={"title": "B", "type": "timer", "timerDuration": 300}, headers=DEBUG_HEADERS)).json()["habit"]
    assert b["type"] == "timer"
    assert b["timerDuration"] == 300

    reorder = await client.post(
        "/habits/reorder",
        json={"order": [{"id": a["id"], "sort_order": 5}, {"id": b["id"], "sort_order": 1}]},
        headers=DEBUG_HEADERS,
    )
    assert reorder.json()["updated"] == 2

    listed = (await client.get("/habits", headers=DEBUG_HEADERS)).json()["habits"]
    assert [h["title"] for h in listed] == ["B", "A"]

    renamed = await client.put(f"/habits/{a['id']}", json={"title": "A2"}, headers=DEBUG_HEADERS)
    assert renamed.json()["habit"]["title"] == "A2"

    deleted = await client.delete(f"/habits/{a['id']}", headers=DEBUG_HEADERS)
    assert deleted.status_code == 200
    listed = (await client.get("/habits", headers=DEBUG_HEADERS)).json()["habits"]
    assert [h["title"] for h in listed] == ["B"]

    assert (await client.delete("/habits/9999", headers=DEBUG_HEADERS)).status_code == 404

@pytest.mark.asyncio
async def test_stats_endpoints(client):
    habit = (await client.post("/habits", json={"title": "A"}, headers=DEBUG_HEADERS)).json()["habit"]
    await client.post("/check-in", json={"habitId": habit["id"], "status": "done"}, headers=DEBUG_HEADERS)

    stats = (await client.get("/stats", params={"range": 30}, headers=DEBUG_HEADERS)).json()
    assert stats["range"] == 30
    assert stats["stats"][0]["streak"] == 1

    heatmap = (await client.get("/stats/heatmap", params={"days": 14}, headers=DEBUG_HEADERS)).json()
    assert heatmap["days"] == 14
    assert len(heatmap["data"]) == 14
    assert heatmap["data"][-1]["level"] == 3

    weekly = (await client.get("/stats/weekly-summary", headers=DEBUG_HEADERS)).json()
    assert len(weekly["days"]) == 7

@pytest.mark.asyncio
async def test_settings_timezone(client):
    ok = await client.post("/settings", json={"timezone": "Asia/Tokyo"}, headers=DEBUG_HEADERS)
    assert ok.status_code == 200
    assert ok.json()["user"]["timezone"] == "Asia/Tokyo"

    bad = await client.post("/settings", json={"timezone": "Nowhere/Land"}, headers=DEBUG_HEADERS)
    assert bad.status_code == 400
