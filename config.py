import logging
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Pusher (realtime push) ---
    PUSHER_APP_ID = os.environ.get("PUSHER_APP_ID")
    PUSHER_KEY = os.environ.get("PUSHER_KEY") or os.environ.get("PUSHER_APP_KEY")
    PUSHER_SECRET = os.environ.get("PUSHER_SECRET")
    PUSHER_CLUSTER = os.environ.get("PUSHER_CLUSTER", "ap2")

    # --- Scheduling ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "Asia/Kolkata")
    RECONCILE_INTERVAL_SECONDS = float(os.environ.get("RECONCILE_INTERVAL_SECONDS", "60"))
    RECONCILE_BATCH_LIMIT = int(os.environ.get("RECONCILE_BATCH_LIMIT", "100"))
    CLAIM_TTL_SECONDS = int(os.environ.get("CLAIM_TTL_SECONDS", "300"))
    RECONCILE_IN_PROCESS = _env_bool("RECONCILE_IN_PROCESS")

    # --- HTTP ---
    CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    PORT = int(os.environ.get("PORT", "4000"))

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Install a root handler once; safe to call from every entrypoint."""
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
