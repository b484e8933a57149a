from datetime import datetime, timezone

import pytest
import pytest_asyncio

import db
from app.utils import push

T0 = datetime(2030, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch):
    """Fresh SQLite database per test; production runs on Postgres."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}")
    await db.dispose_engine()
    await db.create_all()
    yield
    await db.dispose_engine()


@pytest.fixture
def pushed(monkeypatch):
    events = []

    async def fake_publish(conversation_id, payload):
        events.append((conversation_id, payload))

    monkeypatch.setattr(push, "publish_new_message", fake_publish)
    return events
