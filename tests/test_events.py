from unittest.mock import AsyncMock, MagicMock

import pytest

from bossping.broadcast import BroadcastEngine
from bossping.debounce import DebounceTracker
from bossping.errors import DeliveryError
from bossping.events import EventHandler, classify
from bossping.models import GroupMessage, Ignored, JoinedGroup
from bossping.subscribers import SubscriberStore


def _join(group_id: str = "G1") -> dict:
    return {"type": "join", "replyToken": "r-join", "source": {"type": "group", "groupId": group_id}}


def _text(group_id: str, text: str, reply_token: str = "r-1") -> dict:
    return {
        "type": "message",
        "replyToken": reply_token,
        "source": {"type": "group", "groupId": group_id, "userId": "U1"},
        "message": {"type": "text", "id": "1", "text": text},
    }


# ===========================================================================
# classify
# ===========================================================================


class TestClassify:
    def test_join_event(self):
        assert classify(_join("G1")) == JoinedGroup("G1")

    def test_group_text_message(self):
        assert classify(_text("G2", "  hello ")) == GroupMessage("G2", "hello", "r-1")

    def test_room_source_uses_room_id(self):
        event = {"type": "join", "source": {"type": "room", "roomId": "R1"}}
        assert classify(event) == JoinedGroup("R1")

    def test_user_source_is_ignored(self):
        event = _text("G1", "hi")
        event["source"] = {"type": "user", "userId": "U1"}
        assert isinstance(classify(event), Ignored)

    def test_follow_event_is_ignored(self):
        assert isinstance(classify({"type": "follow", "source": {"type": "user", "userId": "U1"}}), Ignored)

    def test_leave_event_is_ignored(self):
        assert isinstance(classify({"type": "leave", "source": {"type": "group", "groupId": "G1"}}), Ignored)

    def test_sticker_message_is_ignored(self):
        event = _text("G1", "x")
        event["message"] = {"type": "sticker", "id": "2"}
        assert isinstance(classify(event), Ignored)

    def test_missing_reply_token_is_allowed(self):
        event = _text("G1", "hi")
        del event["replyToken"]
        assert classify(event) == GroupMessage("G1", "hi", None)

    @pytest.mark.parametrize(
        "event",
        [
            None,
            "join",
            [],
            {},
            {"type": "join"},
            {"type": "join", "source": "G1"},
            {"type": "join", "source": {"type": "group"}},
            {"type": "join", "source": {"type": "group", "groupId": ""}},
            {"type": "message", "source": {"type": "group", "groupId": "G1"}},
            {"type": "message", "source": {"type": "group", "groupId": "G1"}, "message": {"type": "text"}},
        ],
    )
    def test_malformed_events_are_ignored(self, event):
        assert isinstance(classify(event), Ignored)


# ===========================================================================
# EventHandler
# ===========================================================================


def _handler(tmp_path, client=None):  # noqa: ANN001, ANN202
    client = client or _client()
    store = SubscriberStore(tmp_path / "subscribers.json")
    store.load()
    engine = BroadcastEngine(store=store, tracker=DebounceTracker(), client=client, min_interval_seconds=60)
    return EventHandler(store=store, engine=engine, client=client, welcome_text="welcome"), store, client


def _client() -> MagicMock:
    client = MagicMock()
    client.push_message = AsyncMock()
    client.reply_message = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_join_subscribes_and_welcomes(tmp_path):
    handler, store, client = _handler(tmp_path)

    await handler.handle(_join("G1"))

    assert "G1" in store
    client.push_message.assert_awaited_once_with("G1", [{"type": "text", "text": "welcome"}])


@pytest.mark.asyncio
async def test_join_welcome_bypasses_debounce(tmp_path):
    handler, _, client = _handler(tmp_path)

    await handler.handle(_text("G1", "hello"))
    await handler.handle(_join("G1"))

    assert client.push_message.await_count == 2


@pytest.mark.asyncio
async def test_welcome_failure_is_swallowed(tmp_path):
    client = _client()
    client.push_message.side_effect = DeliveryError("boom", status_code=500)
    handler, store, _ = _handler(tmp_path, client)

    await handler.handle(_join("G1"))

    assert "G1" in store


@pytest.mark.asyncio
async def test_message_subscribes_and_pushes_prompt(tmp_path):
    handler, store, client = _handler(tmp_path)

    action = await handler.handle(_text("G2", "hello"))

    assert action == GroupMessage("G2", "hello", "r-1")
    assert store.snapshot() == ("G2",)
    client.push_message.assert_awaited_once()
    to, messages = client.push_message.await_args.args
    assert to == "G2"
    items = messages[0]["quickReply"]["items"]
    assert [item["action"]["label"] for item in items] == ["在", "不在", "準備離開"]
    client.reply_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_two_messages_within_interval_push_once(tmp_path):
    handler, store, client = _handler(tmp_path)

    await handler.handle(_text("G3", "one"))
    await handler.handle(_text("G3", "two"))

    assert store.snapshot() == ("G3",)
    assert client.push_message.await_count == 1


@pytest.mark.asyncio
async def test_quick_reply_answer_is_acknowledged(tmp_path):
    handler, _, client = _handler(tmp_path)

    await handler.handle(_text("G1", "不在", reply_token="r-9"))

    client.reply_message.assert_awaited_once_with(
        "r-9", [{"type": "text", "text": "已收到回覆：不在（謝謝）"}]
    )


@pytest.mark.asyncio
async def test_acknowledgement_failure_still_broadcasts(tmp_path):
    client = _client()
    client.reply_message.side_effect = DeliveryError("expired token", status_code=400)
    handler, _, _ = _handler(tmp_path, client)

    await handler.handle(_text("G1", "在"))

    client.push_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_ignored_event_has_no_effect(tmp_path):
    handler, store, client = _handler(tmp_path)

    action = await handler.handle({"type": "follow", "source": {"type": "user", "userId": "U1"}})

    assert isinstance(action, Ignored)
    assert len(store) == 0
    client.push_message.assert_not_awaited()
