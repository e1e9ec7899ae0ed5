"""
Session restore tests
会话恢复测试
"""

import pytest

from imposter.schemas.game import GamePhase
from imposter.services.chat import RoomChat
from imposter.services.restore import IdentityStore, restore_session, leave


@pytest.fixture
def identity_store(tmp_path):
    return IdentityStore(tmp_path / "session.json")


class TestIdentityStore:

    def test_round_trip_and_clear(self, identity_store):
        assert identity_store.load() is None
        identity_store.save("player-1", "abcdef")

        identity = identity_store.load()
        assert identity.player_id == "player-1"
        assert identity.room_code == "ABCDEF"

        identity_store.clear()
        assert identity_store.load() is None
        identity_store.clear()

    def test_corrupt_file_ignored(self, identity_store):
        identity_store.path.write_text("{not json", encoding="utf-8")
        assert identity_store.load() is None


class TestRestoreSession:
    """重新打开客户端时恢复会话"""

    @pytest.mark.asyncio
    async def test_restores_mid_game(self, identity_store, controller, make_room, store):
        room_id, code, ids = await make_room(3)
        await controller.start_game(room_id, ids[0])
        identity_store.save(ids[2], code)

        session = await restore_session(identity_store, store)

        assert session is not None
        assert session.me.id == ids[2]
        assert session.phase == GamePhase.ROLE_REVEAL
        assert session.round.round_number == 1
        assert len(session.players) == 3
        assert identity_store.load() is not None

    @pytest.mark.asyncio
    async def test_restores_chat_history(self, identity_store, make_room, store):
        room_id, code, ids = await make_room(3)
        chat = RoomChat(store)
        await chat.send_message(room_id, ids[0], "welcome")
        await chat.send_message(room_id, ids[1], "hi")
        identity_store.save(ids[1], code)

        session = await restore_session(identity_store, store)

        assert [m.message for m in session.messages] == ["welcome", "hi"]

    @pytest.mark.asyncio
    async def test_missing_room_clears_identity(self, identity_store, store):
        identity_store.save("ghost", "NOROOM")

        assert await restore_session(identity_store, store) is None
        assert identity_store.load() is None

    @pytest.mark.asyncio
    async def test_player_from_other_room_clears_identity(self, identity_store, make_room, store):
        _, code_a, _ = await make_room(1)
        _, _, ids_b = await make_room(1)
        identity_store.save(ids_b[0], code_a)

        assert await restore_session(identity_store, store) is None
        assert identity_store.load() is None

    @pytest.mark.asyncio
    async def test_no_identity_no_session(self, identity_store, store):
        assert await restore_session(identity_store, store) is None

    def test_leave_clears_identity(self, identity_store):
        identity_store.save("p", "ABCDEF")
        leave(identity_store)
        assert identity_store.load() is None
