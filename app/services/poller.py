"""In-process trigger: reconcile due schedulers on a fixed interval.

Used when no external cron or Celery beat is deployed
(``RECONCILE_IN_PROCESS=true``); ``main.py`` starts and stops it with the app.
"""

from __future__ import annotations

import asyncio
import logging

from app.services import reconciler

_LOGGER = logging.getLogger(__name__)


class ReconcilePoller:
    def __init__(self, interval: float = 60.0):
        self._interval = interval
        self._running = False
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        _LOGGER.info("Reconcile poller started (every %ss)", self._interval)
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def tick(self) -> None:
        self.ticks += 1
        try:
            result = await reconciler.reconcile_due()
        except Exception as exc:  # noqa: BLE001
            # A failed tick must not kill the loop; due rows stay pending.
            _LOGGER.error("Reconcile tick %d failed: %s", self.ticks, exc)
            return
        if result.delivered_count or result.schedules_failed:
            _LOGGER.info("Reconcile tick %d: %s", self.ticks, result.model_dump())

    async def _poll_loop(self) -> None:
        while self._running:
            await self.tick()
            await asyncio.sleep(self._interval)
