"""Celery application instance shared across the backend.

Start a worker (with embedded beat) with:
    celery -A app.celery_app worker -B -Q scheduler -l info --concurrency=1
"""

from celery import Celery
from celery.signals import setup_logging

from config import configure_logging, settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("chat_scheduler", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_default_retry_delay = 30  # seconds

celery_app.conf.task_routes = {
    "app.workers.scheduler.reconcile_due": {"queue": "scheduler"},
}

# Beat schedule: deliver due scheduled messages every minute
celery_app.conf.beat_schedule = {
    "reconcile-due-schedules": {
        "task": "app.workers.scheduler.reconcile_due",
        "schedule": settings.RECONCILE_INTERVAL_SECONDS,
    }
}


@setup_logging.connect
def _configure_worker_logging(**_kwargs):
    configure_logging()


# --- Ensure tasks are registered ---
import app.workers.scheduler  # noqa: E402,F401
