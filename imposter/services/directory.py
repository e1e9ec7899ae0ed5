"""
Session directory service
房间目录服务 - 创建房间、生成房间码、按房间码查找
"""

import random
import logging
from typing import Optional

from imposter.core.config import settings
from imposter.core.exceptions import ValidationError, NotFoundError, ConflictError
from imposter.core.store import RowStore
from imposter.models.room import Room, GameSettings, new_id
from imposter.models.player import Player
from imposter.schemas.game import GamePhase
from imposter.schemas.room import RoomConfig, RoomCreated
from imposter.services.words import WordCatalog, word_catalog

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    """Draw a fixed-length code from the unambiguous alphabet"""
    rng = rng or _system_random
    alphabet = settings.ROOM_CODE_ALPHABET
    return "".join(rng.choice(alphabet) for _ in range(settings.ROOM_CODE_LENGTH))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_display_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name must not be empty")
    if len(name) > settings.MAX_NAME_LENGTH:
        raise ValidationError(f"name must be at most {settings.MAX_NAME_LENGTH} characters")
    return name


class SessionDirectory:
    """房间目录服务类"""

    def __init__(self, store: RowStore, catalog: Optional[WordCatalog] = None,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.catalog = catalog or word_catalog
        self.rng = rng or _system_random

    def validate_config(self, config: RoomConfig) -> RoomConfig:
        if config.num_imposters < 1:
            raise ValidationError("a room needs at least one imposter")
        if config.num_imposters >= config.num_players:
            raise ValidationError("imposters must be fewer than players")
        if not config.categories:
            raise ValidationError("select at least one word category")
        if not self.catalog.known(config.categories):
            raise ValidationError(f"unknown categories: {', '.join(config.categories)}")
        return config

    async def _unused_code(self) -> str:
        for _ in range(settings.ROOM_CODE_ATTEMPTS):
            code = generate_room_code(self.rng)
            if not await self.store.select(Room, code=code, limit=1):
                return code
        raise ConflictError("could not allocate an unused room code")

    async def create_room(self, creator_name: str, config: RoomConfig) -> RoomCreated:
        """
        创建新房间
        Persists the room, its first player (the host) and its settings.
        """
        creator_name = validate_display_name(creator_name)
        self.validate_config(config)

        creator_id = new_id()
        room = None
        # 房间码唯一索引兜底：检查与插入之间被抢占时重新生成
        for _ in range(settings.ROOM_CODE_ATTEMPTS):
            code = await self._unused_code()
            try:
                room = await self.store.insert(Room(
                    code=code,
                    creator_id=creator_id,
                    num_players=config.num_players,
                    num_imposters=config.num_imposters,
                    categories=list(config.categories),
                    hint_enabled=config.hint_enabled,
                    phase=GamePhase.WAITING,
                ))
                break
            except ConflictError:
                logger.info(f"Room code {code} was taken concurrently, retrying")
        if room is None:
            raise ConflictError("could not allocate an unused room code")

        await self.store.insert(Player(
            id=creator_id,
            room_id=room.id,
            display_name=creator_name,
            turn_order=0,
        ))
        await self.store.insert(GameSettings(
            room_id=room.id,
            clue_seconds=config.clue_seconds,
            vote_seconds=config.vote_seconds,
            max_rounds=config.max_rounds,
        ))

        logger.info(f"Room {room.code} created by {creator_name} ({config.num_players} players, "
                    f"{config.num_imposters} imposters)")
        return RoomCreated(code=room.code, room_id=room.id, player_id=creator_id)

    async def find_room(self, code: str) -> Room:
        """按房间码查找（不区分大小写）"""
        rooms = await self.store.select(Room, code=normalize_code(code), limit=1)
        if not rooms:
            raise NotFoundError("room not found", detail={"code": normalize_code(code)})
        return rooms[0]

    async def get_room(self, room_id: str) -> Room:
        room = await self.store.get(Room, room_id)
        if room is None:
            raise NotFoundError("room not found", detail={"room_id": room_id})
        return room

    async def get_settings(self, room_id: str) -> Optional[GameSettings]:
        rows = await self.store.select(GameSettings, room_id=room_id, limit=1)
        return rows[0] if rows else None
