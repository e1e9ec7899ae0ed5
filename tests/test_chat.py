"""
Room chat tests
房间聊天测试
"""

import pytest

from imposter.core.config import settings as app_settings
from imposter.core.exceptions import ValidationError
from imposter.models.chat import ChatMessage
from imposter.services.chat import RoomChat


class TestRoomChat:

    @pytest.mark.asyncio
    async def test_messages_read_oldest_first(self, store, make_room):
        room_id, _, ids = await make_room(3)
        chat = RoomChat(store)

        await chat.send_message(room_id, ids[1], "first")
        await chat.send_message(room_id, ids[0], "second")
        await chat.send_message(room_id, ids[2], "third")

        messages = await chat.messages(room_id)
        assert [m.message for m in messages] == ["first", "second", "third"]
        assert [m.username for m in messages] == ["Player 1", "Host", "Player 2"]

    @pytest.mark.asyncio
    async def test_limit_keeps_newest(self, store, make_room):
        room_id, _, ids = await make_room(2)
        chat = RoomChat(store)
        for i in range(5):
            await chat.send_message(room_id, ids[i % 2], f"line {i}")

        messages = await chat.messages(room_id, limit=2)
        assert [m.message for m in messages] == ["line 3", "line 4"]

    @pytest.mark.asyncio
    async def test_rooms_do_not_share_history(self, store, make_room):
        room_a, _, ids_a = await make_room(2)
        room_b, _, ids_b = await make_room(2)
        chat = RoomChat(store)
        await chat.send_message(room_a, ids_a[0], "in a")
        await chat.send_message(room_b, ids_b[1], "in b")

        assert [m.message for m in await chat.messages(room_a)] == ["in a"]
        assert [m.message for m in await chat.messages(room_b)] == ["in b"]

    @pytest.mark.asyncio
    async def test_whitespace_collapsed(self, store, make_room):
        room_id, _, ids = await make_room(2)
        message = await RoomChat(store).send_message(room_id, ids[0], "  is it\n  a  fruit? ")
        assert message.message == "is it a fruit?"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "x" * (app_settings.MAX_CHAT_LENGTH + 1)])
    async def test_bad_text_rejected(self, store, make_room, text):
        room_id, _, ids = await make_room(2)
        with pytest.raises(ValidationError):
            await RoomChat(store).send_message(room_id, ids[0], text)
        assert await store.count(ChatMessage) == 0

    @pytest.mark.asyncio
    async def test_outsider_cannot_post(self, store, make_room):
        room_a, _, _ = await make_room(2)
        _, _, ids_b = await make_room(2)
        with pytest.raises(ValidationError):
            await RoomChat(store).send_message(room_a, ids_b[0], "hello")

    @pytest.mark.asyncio
    async def test_eliminated_player_can_still_chat(self, store, make_room):
        from imposter.models.player import Player

        room_id, _, ids = await make_room(3)
        await store.update(Player, ids[2], {"is_alive": False})
        message = await RoomChat(store).send_message(room_id, ids[2], "it was the lamp")
        assert message.player_id == ids[2]

    @pytest.mark.asyncio
    async def test_send_notifies_room_subscribers(self, store, feed, make_room):
        room_id, _, ids = await make_room(2)
        subscription = feed.subscribe("chat_messages", "room_id", room_id)

        await RoomChat(store).send_message(room_id, ids[1], "ping")

        event = subscription.queue.get_nowait()
        assert event.op == "insert"
        assert event.row["message"] == "ping"
