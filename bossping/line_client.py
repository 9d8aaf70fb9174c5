"""LINE Messaging API client."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Any, Protocol

import httpx

from bossping.errors import DeliveryError

LOGGER = logging.getLogger(__name__)


class MessagingClient(Protocol):
    """Outbound delivery operations used by the broadcast and event layers."""

    async def push_message(self, to: str, messages: list[dict[str, Any]]) -> None: ...

    async def reply_message(self, reply_token: str, messages: list[dict[str, Any]]) -> None: ...


class LineMessagingClient:
    """Thin async wrapper around the push and reply endpoints."""

    def __init__(
        self,
        channel_access_token: str,
        base_url: str = "https://api.line.me",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._channel_access_token = channel_access_token
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    async def push_message(self, to: str, messages: list[dict[str, Any]]) -> None:
        """Push messages to a user, group or room id."""

        await self._post("/v2/bot/message/push", {"to": to, "messages": messages})

    async def reply_message(self, reply_token: str, messages: list[dict[str, Any]]) -> None:
        """Answer an inbound event using its one-shot reply token."""

        await self._post("/v2/bot/message/reply", {"replyToken": reply_token, "messages": messages})

    async def _post(self, path: str, payload: dict[str, Any]) -> None:
        timeout = httpx.Timeout(self._timeout_seconds)
        try:
            async with httpx.AsyncClient(base_url=self._base_url, timeout=timeout) as client:
                response = await client.post(
                    path,
                    headers={
                        "Authorization": f"Bearer {self._channel_access_token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise DeliveryError(f"LINE request to {path} failed: {exc}") from exc

        if response.is_error:
            raise DeliveryError(
                f"LINE request to {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        LOGGER.debug("LINE request to %s succeeded", path)


def verify_signature(body: bytes, signature: str | None, channel_secret: str) -> bool:
    """Check the ``X-Line-Signature`` header against the raw request body."""

    if not signature or not channel_secret:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature)
