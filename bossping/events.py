"""Classification and handling of inbound LINE webhook events.

``classify`` is pure: it only decides what an event means. ``EventHandler``
carries out the resulting store mutation and sends.
"""

from __future__ import annotations

import logging
from typing import Any

from bossping.broadcast import BroadcastEngine
from bossping.errors import DeliveryError
from bossping.line_client import MessagingClient
from bossping.models import (
    ANSWER_OPTIONS,
    Action,
    GroupMessage,
    Ignored,
    JoinedGroup,
    text_message,
)
from bossping.subscribers import SubscriberStore

LOGGER = logging.getLogger(__name__)

_SOURCE_ID_KEYS = {"group": "groupId", "room": "roomId"}


def classify(event: Any) -> Action:
    """Map a raw webhook event to the action it calls for."""

    if not isinstance(event, dict):
        return Ignored("malformed event")

    event_type = event.get("type")
    group_id = _group_id(event.get("source"))
    if group_id is None:
        return Ignored(f"{event_type} event without a group source")

    if event_type == "join":
        return JoinedGroup(group_id)

    if event_type == "message":
        message = event.get("message")
        if not isinstance(message, dict) or message.get("type") != "text":
            return Ignored("non-text message")
        text = message.get("text")
        if not isinstance(text, str):
            return Ignored("text message without text")
        reply_token = event.get("replyToken")
        return GroupMessage(
            group_id=group_id,
            text=text.strip(),
            reply_token=reply_token if isinstance(reply_token, str) else None,
        )

    return Ignored(f"unhandled event type {event_type!r}")


def _group_id(source: Any) -> str | None:
    if not isinstance(source, dict):
        return None
    key = _SOURCE_ID_KEYS.get(source.get("type"))
    if key is None:
        return None
    value = source.get(key)
    return value if isinstance(value, str) and value else None


class EventHandler:
    """Applies classified events to the store and broadcast engine."""

    def __init__(
        self,
        store: SubscriberStore,
        engine: BroadcastEngine,
        client: MessagingClient,
        welcome_text: str,
    ) -> None:
        self._store = store
        self._engine = engine
        self._client = client
        self._welcome_text = welcome_text

    async def handle(self, event: Any) -> Action:
        action = classify(event)

        if isinstance(action, JoinedGroup):
            self._store.add(action.group_id)
            try:
                await self._client.push_message(action.group_id, [text_message(self._welcome_text)])
            except DeliveryError as exc:
                LOGGER.warning("Welcome message to %s failed: %s", action.group_id, exc)

        elif isinstance(action, GroupMessage):
            if self._store.add(action.group_id):
                LOGGER.info("Group %s subscribed by message", action.group_id)
            if action.text in ANSWER_OPTIONS and action.reply_token:
                await self._acknowledge(action)
            await self._engine.broadcast_one(action.group_id)

        else:
            LOGGER.debug("Ignoring event: %s", action.reason)

        return action

    async def _acknowledge(self, action: GroupMessage) -> None:
        try:
            await self._client.reply_message(
                action.reply_token, [text_message(f"已收到回覆：{action.text}（謝謝）")]
            )
        except DeliveryError as exc:
            LOGGER.warning("Acknowledgement in %s failed: %s", action.group_id, exc)
