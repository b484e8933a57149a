"""Periodic job to deliver due scheduled messages.
Run via the platform cron every minute:
    python -m app.scripts.flush_due_messages
"""

from __future__ import annotations

import asyncio
import logging
import sys

from app.services import reconciler
from config import configure_logging
import db

_LOGGER = logging.getLogger(__name__)


async def main() -> int:
    try:
        result = await reconciler.reconcile_due()
    finally:
        await db.dispose_engine()
    _LOGGER.info("Delivered %d scheduled messages", result.delivered_count)
    return result.delivered_count


def run() -> int:
    configure_logging()
    print("[CRON] flush_due_messages: job started")
    try:
        asyncio.run(main())
    except Exception as e:  # noqa: BLE001
        print(f"[CRON] flush_due_messages: job failed: {e}")
        return 1
    print("[CRON] flush_due_messages: job completed successfully")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(run())
