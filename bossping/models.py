"""Core domain models used across layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

PROMPT_TEXT = "老闆在嗎？"
ANSWER_OPTIONS = ("在", "不在", "準備離開")


@dataclass(frozen=True, slots=True)
class QuickReplyOption:
    """A quick-reply button; tapping it sends ``text`` back to the chat."""

    label: str
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "action",
            "action": {"type": "message", "label": self.label, "text": self.text},
        }


@dataclass(frozen=True, slots=True)
class BroadcastMessage:
    """Outbound prompt pushed to tracked groups."""

    text: str = PROMPT_TEXT
    options: tuple[QuickReplyOption, ...] = field(
        default_factory=lambda: tuple(QuickReplyOption(label=o, text=o) for o in ANSWER_OPTIONS)
    )

    def to_payload(self) -> dict[str, Any]:
        """Render as a LINE text message object."""

        payload: dict[str, Any] = {"type": "text", "text": self.text}
        if self.options:
            payload["quickReply"] = {"items": [option.to_payload() for option in self.options]}
        return payload


def text_message(text: str) -> dict[str, Any]:
    """Plain LINE text message object."""

    return {"type": "text", "text": text}


@dataclass(frozen=True, slots=True)
class JoinedGroup:
    """The bot was added to a group or room."""

    group_id: str


@dataclass(frozen=True, slots=True)
class GroupMessage:
    """A text message was posted in a group or room."""

    group_id: str
    text: str
    reply_token: str | None = None


@dataclass(frozen=True, slots=True)
class Ignored:
    """An event that needs no action."""

    reason: str


Action = Union[JoinedGroup, GroupMessage, Ignored]


class BroadcastOutcome(str, Enum):
    """Result of a single broadcast attempt."""

    SENT = "sent"
    DEBOUNCED = "debounced"
    PRUNED = "pruned"
    FAILED = "failed"
