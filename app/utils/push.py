"""Realtime push to chat clients via Pusher Channels.

Each conversation is its own channel; clients subscribed to it render the
``messages:new`` payload immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pusher

from app.types.errors import NotifyFailure
from config import settings

NEW_MESSAGE_EVENT = "messages:new"

_LOGGER = logging.getLogger(__name__)
_client: pusher.Pusher | None = None


def _get_client() -> pusher.Pusher | None:
    global _client
    if _client is None and settings.PUSHER_APP_ID and settings.PUSHER_KEY and settings.PUSHER_SECRET:
        _client = pusher.Pusher(
            app_id=settings.PUSHER_APP_ID,
            key=settings.PUSHER_KEY,
            secret=settings.PUSHER_SECRET,
            cluster=settings.PUSHER_CLUSTER,
            ssl=True,
        )
    return _client


async def publish_new_message(conversation_id: str, payload: dict[str, Any]) -> None:
    """Publish a new-message event on the conversation channel.

    Raises NotifyFailure if Pusher rejects the event or is unreachable.
    """
    client = _get_client()
    if client is None:
        _LOGGER.info("[Push] DEV mode: would trigger %s on %s", NEW_MESSAGE_EVENT, conversation_id)
        return
    try:
        # The Pusher client is blocking (requests); keep it off the event loop.
        await asyncio.to_thread(client.trigger, conversation_id, NEW_MESSAGE_EVENT, payload)
    except Exception as exc:  # noqa: BLE001
        raise NotifyFailure(f"push to {conversation_id} failed: {exc}") from exc
