"""Error taxonomy for scheduling and delivery.

Only ``ValidationError`` ever reaches an HTTP caller of ``/schedule``. The
others are contained by the reconciler one record (or one receiver) at a time.
"""

from __future__ import annotations

from dataclasses import dataclass


class SchedulerError(Exception):
    """Base class for every error raised by this service."""


class ValidationError(SchedulerError):
    """A scheduling request is malformed or incomplete. Nothing was stored."""


class StoreFailure(SchedulerError):
    """A read or write against the database failed."""


class NotifyFailure(SchedulerError):
    """The realtime push for an already persisted message failed."""


@dataclass(frozen=True)
class ResolutionGap:
    """A receiver that shares no conversation with the sender.

    Not raised: the reconciler records these on the schedule and in its result.
    """

    scheduler_id: str
    sender_id: str
    receiver_id: str
