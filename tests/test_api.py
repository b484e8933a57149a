from datetime import datetime, timedelta, timezone

import httpx
import pytest

import db
from app.types.errors import StoreFailure
from app.utils.timezones import as_utc
from config import settings
from main import app

from conftest import T0


def _client():
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_schedule_persists_pending_record(database, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_TIMEZONE", "Asia/Kolkata")
    payload = {
        "currentUserId": "S",
        "receiverIdArray": ["A", "B"],
        "message": "hello",
        "allUsers": [{"id": "A", "name": "Asha"}, {"id": "B"}],
        "datetime": "2030-01-01T09:00:00Z",
    }
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "scheduled"
    assert body["datetimeLocal"].startswith("2030-01-01T14:30:00")

    sched = await db.get_scheduler(body["schedulerId"])
    assert sched.status == "pending"
    assert sched.receiver_ids == ["A", "B"]
    assert sched.receiver_names == ["Asha", "Unknown"]
    assert as_utc(sched.scheduled_at) == T0


@pytest.mark.asyncio
async def test_naive_datetime_uses_default_timezone(database, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_TIMEZONE", "Asia/Kolkata")
    payload = {
        "currentUserId": "S",
        "receiverIdArray": ["A"],
        "message": "hello",
        "datetime": "2030-01-01T10:00:00",
    }
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    sched = await db.get_scheduler(resp.json()["schedulerId"])
    assert as_utc(sched.scheduled_at) == datetime(2030, 1, 1, 4, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_missing_datetime_is_rejected(database):
    payload = {"currentUserId": "S", "receiverIdArray": ["A"], "message": "hello"}
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 400
    assert resp.json() == {"error": "datetime is required"}
    far_future = T0 + timedelta(days=3650)
    assert await db.fetch_due_schedulers(far_future, far_future) == []


@pytest.mark.asyncio
async def test_blank_message_is_rejected(database):
    payload = {"currentUserId": "S", "message": "  ", "datetime": "2030-01-01T09:00:00Z"}
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_schedule_store_failure_returns_500(database, monkeypatch):
    async def broken_insert(**kwargs):
        raise StoreFailure("db down")

    monkeypatch.setattr(db, "insert_scheduler", broken_insert)
    payload = {"currentUserId": "S", "message": "hi", "datetime": "2030-01-01T09:00:00Z"}
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to schedule message"}


@pytest.mark.asyncio
async def test_send_pending_messages_reports_count(database, pushed):
    await db.create_conversation(["S", "A"])
    past = datetime.now(tz=timezone.utc) - timedelta(minutes=1)
    sched = await db.insert_scheduler("S", ["A", "B"], "hello", past)

    async with _client() as client:
        resp = await client.post("/send-pending-messages")
        view = await client.get(f"/schedule/{sched.scheduler_id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["sentCount"] == 1
    assert body["delivered_count"] == 1
    assert body["unresolved_receivers"] == 1

    assert view.status_code == 200
    assert view.json()["status"] == "sent"
    assert view.json()["unresolved_receiver_ids"] == ["B"]


@pytest.mark.asyncio
async def test_send_pending_messages_batch_failure(database, monkeypatch):
    async def broken_fetch(*args, **kwargs):
        raise StoreFailure("db down")

    monkeypatch.setattr(db, "fetch_due_schedulers", broken_fetch)
    async with _client() as client:
        resp = await client.post("/send-pending-messages")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to send pending messages"}


@pytest.mark.asyncio
async def test_unknown_schedule_is_404(database):
    async with _client() as client:
        resp = await client.get("/schedule/nope")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_health():
    async with _client() as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"message": "hi", "datetime": "2030-01-01T09:00:00Z"},
        {"currentUserId": "S", "datetime": "2030-01-01T09:00:00Z"},
    ],
)
async def test_missing_sender_or_message_is_a_400(database, payload):
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 400
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_malformed_body_uses_error_shape(database):
    payload = {"currentUserId": "S", "message": "hi", "datetime": "not a date"}
    async with _client() as client:
        resp = await client.post("/schedule", json=payload)

    assert resp.status_code == 400
    assert resp.json()["error"].startswith("datetime")
