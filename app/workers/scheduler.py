"""Celery task that reconciles due schedulers (fired by beat every minute)."""

from __future__ import annotations

import asyncio

from app.celery_app import celery_app
from app.services import reconciler
import db


async def _reconcile_once() -> dict:
    try:
        result = await reconciler.reconcile_due()
    finally:
        # Each task run gets a fresh event loop; pooled connections can't outlive it.
        await db.dispose_engine()
    return result.model_dump()


@celery_app.task(name="app.workers.scheduler.reconcile_due", bind=True, max_retries=3)
def reconcile_due(self):  # noqa: D401
    """Deliver due schedulers; retry later if the due lookup fails."""
    try:
        return asyncio.run(_reconcile_once())
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc, countdown=30)
