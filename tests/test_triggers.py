import asyncio

import pytest

from app.celery_app import celery_app
from app.scripts import flush_due_messages
from app.services import reconciler
from app.services.poller import ReconcilePoller
from app.types.errors import StoreFailure
from app.types.schedule_contract import ReconcileResult
from app.workers import scheduler as scheduler_worker


def _fake_reconcile(calls, result=None, exc=None):
    async def fake(now=None):
        calls.append(now)
        if exc is not None:
            raise exc
        return result or ReconcileResult()
    return fake


def test_beat_schedule_runs_reconcile_task():
    entry = celery_app.conf.beat_schedule["reconcile-due-schedules"]
    assert entry["task"] == "app.workers.scheduler.reconcile_due"
    assert entry["task"] in celery_app.tasks


def test_celery_task_returns_result(monkeypatch):
    calls = []
    monkeypatch.setattr(
        reconciler, "reconcile_due", _fake_reconcile(calls, ReconcileResult(delivered_count=2))
    )

    outcome = scheduler_worker.reconcile_due.apply().get()

    assert outcome["sentCount"] == 2
    assert len(calls) == 1


def test_cron_script_success(monkeypatch):
    calls = []
    monkeypatch.setattr(reconciler, "reconcile_due", _fake_reconcile(calls))

    assert flush_due_messages.run() == 0
    assert len(calls) == 1


def test_cron_script_failure_exit_code(monkeypatch):
    monkeypatch.setattr(
        reconciler, "reconcile_due", _fake_reconcile([], exc=StoreFailure("db down"))
    )

    assert flush_due_messages.run() == 1


@pytest.mark.asyncio
async def test_poller_tick_survives_failures(monkeypatch):
    calls = []
    monkeypatch.setattr(
        reconciler, "reconcile_due", _fake_reconcile(calls, exc=StoreFailure("db down"))
    )
    poller = ReconcilePoller(interval=60)

    await poller.tick()

    assert poller.ticks == 1
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_poller_start_stop(monkeypatch):
    calls = []
    monkeypatch.setattr(reconciler, "reconcile_due", _fake_reconcile(calls))
    poller = ReconcilePoller(interval=0.01)

    await poller.start()
    await asyncio.sleep(0.05)
    await poller.stop()

    assert not poller.running
    assert calls
