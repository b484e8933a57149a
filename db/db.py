"""
Async DB helpers for scheduled message delivery.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.

Every helper opens its own session and commits on its own; there is no
transaction spanning two helpers.
"""

from __future__ import annotations

import asyncio
import functools
import os
from datetime import datetime
from typing import AsyncGenerator
from uuid import uuid4

from sqlalchemy import (
    JSON, DateTime, ForeignKey, Index, Text, and_, func, or_, select, update
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from app.types.errors import StoreFailure
from app.utils.timezones import utc_now

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if url.startswith("sqlite"):
        return url
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if url.startswith("sqlite"):
            _engine = create_async_engine(url)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()


def _store_op(fn):
    """Surface driver/ORM errors as StoreFailure."""
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            # asyncpg connect errors and timeouts reach us unwrapped by SQLAlchemy.
            raise StoreFailure(f"{fn.__name__} failed: {exc}") from exc
    return wrapper

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class Scheduler(Base):
    __tablename__ = "schedulers"

    scheduler_id:   Mapped[str] = mapped_column(primary_key=True)
    sender_id:      Mapped[str]
    receiver_ids:   Mapped[list[str]] = mapped_column(JSON)
    receiver_names: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    message:        Mapped[str] = mapped_column(Text)
    status:         Mapped[str] = mapped_column(default="pending")
    scheduled_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True))
    claimed_at:     Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    unresolved_receiver_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    last_error:     Mapped[str | None] = mapped_column(Text)
    created_at:     Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    sent_at:        Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_schedulers_status_scheduled_at", "status", "scheduled_at"),
    )


class Conversation(Base):
    __tablename__ = "conversations"

    conversation_id: Mapped[str] = mapped_column(primary_key=True)
    created_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.conversation_id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(primary_key=True, index=True)


class Message(Base):
    __tablename__ = "messages"

    message_id:      Mapped[str] = mapped_column(primary_key=True)
    body:            Mapped[str] = mapped_column(Text)
    sender_id:       Mapped[str]
    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.conversation_id", ondelete="CASCADE"), index=True
    )
    created_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MessageSeen(Base):
    __tablename__ = "message_seen"

    message_id: Mapped[str] = mapped_column(
        ForeignKey("messages.message_id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(primary_key=True)


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (tests / local dev; production uses Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. CRUD helpers
# ──────────────────────────────────────────────────────────────────────

# 5.1 Insert scheduler -------------------------------------------------
@_store_op
async def insert_scheduler(
    sender_id: str,
    receiver_ids: list[str],
    message: str,
    scheduled_at: datetime,
    receiver_names: list[str] | None = None,
) -> Scheduler:
    sched = Scheduler(
        scheduler_id=str(uuid4()),
        sender_id=sender_id,
        receiver_ids=list(receiver_ids),
        receiver_names=receiver_names,
        message=message,
        status="pending",
        scheduled_at=scheduled_at,
        created_at=utc_now(),
    )
    async for s in get_session():
        s.add(sched)
        await s.commit()
    return sched


@_store_op
async def get_scheduler(scheduler_id: str) -> Scheduler | None:
    async for s in get_session():
        sched = await s.get(Scheduler, scheduler_id)
    return sched


# 5.2 Due lookup + claim -----------------------------------------------
def _claimable(now: datetime, stale_before: datetime):
    return or_(
        and_(Scheduler.status == "pending", Scheduler.scheduled_at <= now),
        and_(Scheduler.status == "processing", Scheduler.claimed_at < stale_before),
    )


@_store_op
async def fetch_due_schedulers(
    now: datetime,
    stale_before: datetime,
    limit: int = 100,
    after: tuple[datetime, str] | None = None,
) -> list[Scheduler]:
    """One page of claimable schedulers in ``(scheduled_at, scheduler_id)`` order.

    *after* is the key of the last row of the previous page.
    """
    async for s in get_session():
        stmt = select(Scheduler).where(_claimable(now, stale_before))
        if after is not None:
            after_at, after_id = after
            stmt = stmt.where(
                or_(
                    Scheduler.scheduled_at > after_at,
                    and_(Scheduler.scheduled_at == after_at, Scheduler.scheduler_id > after_id),
                )
            )
        stmt = stmt.order_by(Scheduler.scheduled_at, Scheduler.scheduler_id).limit(limit)
        res = await s.execute(stmt)
        rows = list(res.scalars().all())
    return rows


@_store_op
async def claim_scheduler(scheduler_id: str, now: datetime, stale_before: datetime) -> bool:
    """Compare-and-swap a due scheduler into ``processing``.

    Returns False when another run already holds (or finished) the record.
    """
    async for s in get_session():
        res = await s.execute(
            update(Scheduler)
            .where(Scheduler.scheduler_id == scheduler_id, _claimable(now, stale_before))
            .values(status="processing", claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        await s.commit()
    return res.rowcount == 1


# 5.3 mark_sent / release ----------------------------------------------
@_store_op
async def mark_scheduler_sent(
    scheduler_id: str,
    claimed_at: datetime,
    sent_at: datetime,
    unresolved: list[str] | None = None,
) -> bool:
    """Finish a claimed scheduler.

    Returns False if the claim was taken over by another run in the meantime.
    """
    async for s in get_session():
        res = await s.execute(
            update(Scheduler)
            .where(
                Scheduler.scheduler_id == scheduler_id,
                Scheduler.status == "processing",
                Scheduler.claimed_at == claimed_at,
            )
            .values(
                status="sent",
                sent_at=sent_at,
                unresolved_receiver_ids=unresolved or None,
                last_error=None,
            )
            .execution_options(synchronize_session=False)
        )
        await s.commit()
    return res.rowcount == 1


@_store_op
async def release_scheduler(scheduler_id: str, claimed_at: datetime, err: str):
    """Hand a claimed scheduler back to ``pending`` so the next run retries it."""
    async for s in get_session():
        await s.execute(
            update(Scheduler)
            .where(
                Scheduler.scheduler_id == scheduler_id,
                Scheduler.status == "processing",
                Scheduler.claimed_at == claimed_at,
            )
            .values(status="pending", claimed_at=None, last_error=err)
            .execution_options(synchronize_session=False)
        )
        await s.commit()


# 5.4 Conversations + messages -----------------------------------------
@_store_op
async def create_conversation(participant_ids: list[str], created_at: datetime | None = None) -> str:
    cid = str(uuid4())
    async for s in get_session():
        s.add(Conversation(conversation_id=cid, created_at=created_at or utc_now()))
        s.add_all(
            ConversationParticipant(conversation_id=cid, user_id=uid)
            for uid in dict.fromkeys(participant_ids)
        )
        await s.commit()
    return cid


@_store_op
async def find_shared_conversation(sender_id: str, receiver_id: str) -> str | None:
    """Oldest conversation whose participants include both users."""
    wanted = {sender_id, receiver_id}
    async for s in get_session():
        stmt = (
            select(ConversationParticipant.conversation_id)
            .join(
                Conversation,
                Conversation.conversation_id == ConversationParticipant.conversation_id,
            )
            .where(ConversationParticipant.user_id.in_(list(wanted)))
            .group_by(ConversationParticipant.conversation_id, Conversation.created_at)
            .having(func.count(func.distinct(ConversationParticipant.user_id)) == len(wanted))
            .order_by(Conversation.created_at, ConversationParticipant.conversation_id)
            .limit(1)
        )
        res = await s.execute(stmt)
        cid = res.scalar_one_or_none()
    return cid


@_store_op
async def create_message(
    conversation_id: str, sender_id: str, body: str, created_at: datetime
) -> Message:
    msg = Message(
        message_id=str(uuid4()),
        body=body,
        sender_id=sender_id,
        conversation_id=conversation_id,
        created_at=created_at,
    )
    async for s in get_session():
        s.add(msg)
        await s.commit()
    return msg


@_store_op
async def touch_conversation(conversation_id: str, last_message_at: datetime):
    async for s in get_session():
        await s.execute(
            update(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .values(last_message_at=last_message_at)
            .execution_options(synchronize_session=False)
        )
        await s.commit()


@_store_op
async def get_conversation(conversation_id: str) -> Conversation | None:
    async for s in get_session():
        conv = await s.get(Conversation, conversation_id)
    return conv


@_store_op
async def list_messages(conversation_id: str) -> list[Message]:
    async for s in get_session():
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        res = await s.execute(stmt)
        rows = list(res.scalars().all())
    return rows


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _session_maker = None

