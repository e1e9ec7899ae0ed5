"""
Session directory tests
房间目录测试
"""

import random
import pytest
from hypothesis import given, strategies as st

from imposter.core.config import settings as app_settings
from imposter.core.exceptions import ValidationError, NotFoundError
from imposter.models.player import Player
from imposter.models.room import Room
from imposter.schemas.game import GamePhase
from imposter.schemas.room import RoomConfig
from imposter.services.directory import (
    SessionDirectory, generate_room_code, normalize_code, validate_display_name
)


class TestRoomCodes:
    """房间码生成"""

    @given(seed=st.integers(min_value=0, max_value=10**6))
    def test_code_uses_unambiguous_alphabet(self, seed):
        code = generate_room_code(random.Random(seed))
        assert len(code) == app_settings.ROOM_CODE_LENGTH
        assert set(code) <= set(app_settings.ROOM_CODE_ALPHABET)
        for ambiguous in "01IO":
            assert ambiguous not in code

    def test_normalize_code(self):
        assert normalize_code("  ab3xyz ") == "AB3XYZ"
        assert normalize_code(None) == ""


class TestDisplayNames:

    def test_name_is_trimmed(self):
        assert validate_display_name("  Alice ") == "Alice"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 21])
    def test_bad_names_rejected(self, name):
        with pytest.raises(ValidationError):
            validate_display_name(name)


class TestSessionDirectory:
    """房间创建与查找"""

    @pytest.mark.asyncio
    async def test_create_room_seats_host(self, store, rng):
        directory = SessionDirectory(store, rng=rng)
        created = await directory.create_room("Alice", RoomConfig(num_players=5, num_imposters=2))

        room = await store.get(Room, created.room_id)
        assert room.code == created.code
        assert room.phase == GamePhase.WAITING
        assert room.phase_generation == 0
        assert room.creator_id == created.player_id
        assert room.num_imposters == 2

        host = await store.get(Player, created.player_id)
        assert host.turn_order == 0
        assert host.display_name == "Alice"
        assert host.score == 0

        game_settings = await directory.get_settings(created.room_id)
        assert game_settings.clue_seconds == app_settings.DEFAULT_CLUE_SECONDS
        assert game_settings.max_rounds == app_settings.DEFAULT_MAX_ROUNDS

    @pytest.mark.asyncio
    async def test_find_room_ignores_case(self, store, rng):
        directory = SessionDirectory(store, rng=rng)
        created = await directory.create_room("Alice", RoomConfig())

        room = await directory.find_room(created.code.lower())
        assert room.id == created.room_id

    @pytest.mark.asyncio
    async def test_unknown_code_not_found(self, store):
        with pytest.raises(NotFoundError):
            await SessionDirectory(store).find_room("ZZZZZZ")

    @pytest.mark.asyncio
    async def test_taken_code_is_skipped(self, store):
        taken = generate_room_code(random.Random(7))
        await store.insert(Room(code=taken, creator_id="someone", categories=["Objects"]))

        created = await SessionDirectory(store, rng=random.Random(7)).create_room("Alice", RoomConfig())
        assert created.code != taken
        assert await store.count(Room) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("config", [
        RoomConfig(num_players=4, num_imposters=0),
        RoomConfig(num_players=3, num_imposters=3),
        RoomConfig(categories=[]),
        RoomConfig(categories=["Not A Category"]),
    ])
    async def test_invalid_config_rejected(self, store, config):
        with pytest.raises(ValidationError):
            await SessionDirectory(store).create_room("Alice", config)
        assert await store.count(Room) == 0

    @pytest.mark.asyncio
    async def test_create_publishes_changes(self, store, feed, rng):
        players = feed.subscribe("players", "turn_order", 0)

        await SessionDirectory(store, rng=rng).create_room("Alice", RoomConfig())

        event = players.queue.get_nowait()
        assert event.op == "insert"
        assert event.row["display_name"] == "Alice"
