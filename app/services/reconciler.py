"""Delivers due schedulers.

One pass:
1. Select pending schedulers whose ``scheduled_at`` has passed (plus claims
   abandoned longer than ``CLAIM_TTL_SECONDS``).
2. Claim each one with a compare-and-swap so overlapping runs never both
   deliver it.
3. For every receiver, find the conversation shared with the sender, create
   the message, bump ``last_message_at`` and push ``messages:new``.
4. Mark the scheduler sent, recording receivers with no shared conversation.

A store failure aborts only the scheduler being processed; it is released
back to ``pending`` and the pass moves on. Push failures never undo a
message that is already persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import db
from app.types.errors import NotifyFailure, ResolutionGap, StoreFailure
from app.types.schedule_contract import MessageEvent, ReconcileResult
from app.utils import push
from app.utils.timezones import as_utc, utc_now
from config import settings

_LOGGER = logging.getLogger(__name__)


@dataclass
class _Outcome:
    claimed: bool = False
    finalized: bool = False
    delivered: int = 0
    notify_failures: int = 0
    gaps: list[ResolutionGap] = field(default_factory=list)


async def reconcile_due(now: datetime | None = None) -> ReconcileResult:
    """Deliver every due scheduler once.

    Raises StoreFailure only when the due lookup itself fails.
    """
    now = as_utc(now) if now is not None else utc_now()
    stale_before = now - timedelta(seconds=settings.CLAIM_TTL_SECONDS)

    result = ReconcileResult()
    seen = 0
    after = None
    while True:
        # Keyset paging: records released after a failure sit behind the cursor
        # and wait for the next call.
        page = await db.fetch_due_schedulers(
            now, stale_before, limit=settings.RECONCILE_BATCH_LIMIT, after=after
        )
        for sched in page:
            await _reconcile_one(sched, now, stale_before, result)
        seen += len(page)
        if len(page) < settings.RECONCILE_BATCH_LIMIT:
            break
        after = (page[-1].scheduled_at, page[-1].scheduler_id)

    if seen:
        _LOGGER.info(
            "Reconciled %d due schedulers: %d messages delivered, %d failed",
            seen, result.delivered_count, result.schedules_failed,
        )
    return result


async def _reconcile_one(sched, now: datetime, stale_before: datetime, result: ReconcileResult) -> None:
    outcome = _Outcome()
    try:
        await _process_scheduler(sched, now, stale_before, outcome)
    except StoreFailure as exc:
        result.schedules_failed += 1
        _LOGGER.error("Scheduler %s aborted: %s", sched.scheduler_id, exc)
        if outcome.claimed:
            await _release(sched.scheduler_id, now, str(exc))
    else:
        if outcome.finalized:
            result.schedules_sent += 1
    result.delivered_count += outcome.delivered
    result.notify_failures += outcome.notify_failures
    result.unresolved_receivers += len(outcome.gaps)


async def _process_scheduler(sched, now: datetime, stale_before: datetime, outcome: _Outcome) -> None:
    if not await db.claim_scheduler(sched.scheduler_id, now, stale_before):
        _LOGGER.debug("Scheduler %s already claimed, skipping", sched.scheduler_id)
        return
    outcome.claimed = True

    for receiver_id in sched.receiver_ids or []:
        conversation_id = await db.find_shared_conversation(sched.sender_id, receiver_id)
        if conversation_id is None:
            gap = ResolutionGap(sched.scheduler_id, sched.sender_id, receiver_id)
            outcome.gaps.append(gap)
            _LOGGER.warning(
                "Scheduler %s: no conversation shared by %s and %s",
                gap.scheduler_id, gap.sender_id, gap.receiver_id,
            )
            continue

        message = await db.create_message(conversation_id, sched.sender_id, sched.message, now)
        outcome.delivered += 1
        await db.touch_conversation(conversation_id, now)

        event = MessageEvent(
            id=message.message_id,
            body=message.body,
            sender_id=message.sender_id,
            conversation_id=conversation_id,
            created_at=now,
        )
        try:
            await push.publish_new_message(conversation_id, event.model_dump(mode="json", by_alias=True))
        except NotifyFailure as exc:
            outcome.notify_failures += 1
            _LOGGER.error("Message %s stored but push failed: %s", message.message_id, exc)
            continue
        _LOGGER.info("Sent + pushed message to %s in conversation %s", receiver_id, conversation_id)

    outcome.finalized = await db.mark_scheduler_sent(
        sched.scheduler_id, now, now, [gap.receiver_id for gap in outcome.gaps]
    )
    if not outcome.finalized:
        _LOGGER.warning(
            "Scheduler %s: claim taken over by another run, not marking sent",
            sched.scheduler_id,
        )


async def _release(scheduler_id: str, claimed_at: datetime, err: str) -> None:
    try:
        await db.release_scheduler(scheduler_id, claimed_at, err)
    except StoreFailure as exc:
        # Left in ``processing``; picked up again once the claim goes stale.
        _LOGGER.error("Could not release scheduler %s: %s", scheduler_id, exc)
