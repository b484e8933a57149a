"""Pydantic models for the scheduling API and the realtime message event.

The request model accepts both snake_case names and the camelCase names the
chat frontend already sends (``currentUserId``, ``receiverIdArray``,
``allUsers``, ``datetime``).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class DirectoryEntry(BaseModel):
    """Snapshot of a user as the client sees it at scheduling time."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    conversation_ids: List[str] = Field(default_factory=list, alias="conversationIds")


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Required fields are optional at the model level so a missing value
    # becomes a 400 from the service, not a 422.
    sender_id: Optional[str] = Field(default=None, alias="currentUserId")
    receiver_ids: List[str] = Field(default_factory=list, alias="receiverIdArray")
    message: Optional[str] = None
    directory: List[DirectoryEntry] = Field(default_factory=list, alias="allUsers")
    fire_at: Optional[datetime] = Field(default=None, alias="datetime")

    @field_validator("receiver_ids")
    def _dedupe_receivers(cls, v: list[str]):  # noqa: N805
        seen: list[str] = []
        for rid in v:
            if rid not in seen:
                seen.append(rid)
        return seen

    def receiver_names(self) -> list[str]:
        names = {u.id: u.name for u in self.directory}
        return [names.get(rid) or "Unknown" for rid in self.receiver_ids]


class ScheduleConfirmation(BaseModel):
    status: Literal["scheduled"] = "scheduled"
    scheduler_id: str = Field(serialization_alias="schedulerId")
    fire_at: datetime = Field(serialization_alias="datetime")
    fire_at_local: datetime = Field(serialization_alias="datetimeLocal")


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation pass."""

    delivered_count: int = 0
    schedules_sent: int = 0
    schedules_failed: int = 0
    unresolved_receivers: int = 0
    notify_failures: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def sentCount(self) -> int:  # noqa: N802
        return self.delivered_count


class MessageEvent(BaseModel):
    """Payload pushed on a conversation channel as ``messages:new``."""

    id: str
    body: str
    sender_id: str = Field(serialization_alias="senderId")
    conversation_id: str = Field(serialization_alias="conversationId")
    created_at: datetime = Field(serialization_alias="createdAt")
    seen_ids: List[str] = Field(default_factory=list, serialization_alias="seenIds")


class ScheduleView(BaseModel):
    """Read model of a stored scheduler."""

    model_config = ConfigDict(from_attributes=True)

    scheduler_id: str
    sender_id: str
    receiver_ids: List[str]
    receiver_names: Optional[List[str]] = None
    message: str
    status: str
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    unresolved_receiver_ids: Optional[List[str]] = None
    last_error: Optional[str] = None
