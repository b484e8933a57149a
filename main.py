import logging

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import db
from app.services import reconciler, scheduling
from app.services.poller import ReconcilePoller
from app.types.errors import StoreFailure, ValidationError
from app.types.schedule_contract import (
    ReconcileResult,
    ScheduleConfirmation,
    ScheduleRequest,
    ScheduleView,
)
from app.utils.timezones import as_utc
from config import configure_logging, settings

configure_logging()
_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="chat-scheduler")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

poller = ReconcilePoller(interval=settings.RECONCILE_INTERVAL_SECONDS)

# Start the optional in-process trigger and close the DB pool on shutdown

@app.on_event("startup")
async def startup_event():
    # Tables are managed via Alembic migrations
    if settings.RECONCILE_IN_PROCESS:
        await poller.start()

@app.on_event("shutdown")
async def shutdown_event():
    await poller.stop()
    await db.dispose_engine()


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        detail = "invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": detail})

# --------------------------------------------
# Endpoints
# --------------------------------------------

@app.post("/schedule", response_model=ScheduleConfirmation)
async def schedule_message(request: ScheduleRequest):
    try:
        return await scheduling.create_schedule(request)
    except StoreFailure as exc:
        _LOGGER.error("Error scheduling message: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Failed to schedule message"})


@app.get("/schedule/{scheduler_id}", response_model=ScheduleView)
async def get_schedule(scheduler_id: str):
    sched = await db.get_scheduler(scheduler_id)
    if sched is None:
        raise HTTPException(404, "Scheduler not found")
    view = ScheduleView.model_validate(sched)
    view.scheduled_at = as_utc(view.scheduled_at)
    if view.sent_at is not None:
        view.sent_at = as_utc(view.sent_at)
    return view


# Called by the platform cron every minute
@app.post("/send-pending-messages", response_model=ReconcileResult)
async def send_pending_messages():
    try:
        return await reconciler.reconcile_due()
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Error sending pending messages: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Failed to send pending messages"})


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":  # pragma: no cover
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT)
