"""Accepts a future delivery request and persists it as a pending scheduler."""

from __future__ import annotations

import logging

import db
from app.types.errors import ValidationError
from app.types.schedule_contract import ScheduleConfirmation, ScheduleRequest
from app.utils.timezones import from_local, to_local

_LOGGER = logging.getLogger(__name__)


def _validate(request: ScheduleRequest) -> None:
    if request.fire_at is None:
        raise ValidationError("datetime is required")
    if not (request.sender_id or "").strip():
        raise ValidationError("currentUserId must be a non-empty string")
    if not (request.message or "").strip():
        raise ValidationError("message must be a non-empty string")


async def create_schedule(request: ScheduleRequest) -> ScheduleConfirmation:
    _validate(request)
    try:
        fire_at = from_local(request.fire_at)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    sched = await db.insert_scheduler(
        sender_id=request.sender_id,
        receiver_ids=request.receiver_ids,
        message=request.message,
        scheduled_at=fire_at,
        receiver_names=request.receiver_names(),
    )
    _LOGGER.info(
        "Scheduler %s created for %s (%d receivers)",
        sched.scheduler_id, fire_at.isoformat(), len(request.receiver_ids),
    )
    return ScheduleConfirmation(
        scheduler_id=sched.scheduler_id,
        fire_at=fire_at,
        fire_at_local=to_local(fire_at),
    )
