"""
Roster management service
玩家名单服务 - 加入房间、分配发言顺序、查询存活状态
"""

import logging
from typing import List, Optional

from imposter.core.config import settings
from imposter.core.exceptions import ConflictError, InvalidPhaseError, NotFoundError
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.room import Room
from imposter.schemas.game import GamePhase
from imposter.schemas.room import RoomJoined
from imposter.services.directory import SessionDirectory, validate_display_name

logger = logging.getLogger(__name__)


class RosterManager:
    """玩家名单管理类"""

    def __init__(self, store: RowStore, directory: Optional[SessionDirectory] = None):
        self.store = store
        self.directory = directory or SessionDirectory(store)

    async def join(self, code: str, display_name: str) -> RoomJoined:
        """
        加入房间
        Turn order starts at the current player count; a concurrent join that
        grabbed the same index makes the unique index reject ours, and we move
        past the highest index instead.
        """
        room = await self.directory.find_room(code)
        if room.phase != GamePhase.WAITING:
            raise InvalidPhaseError("join", GamePhase.WAITING, room.phase)
        display_name = validate_display_name(display_name)
        # 插入冲突会回滚会话并使已加载的对象过期
        room_id, room_code = room.id, room.code

        turn_order = await self.store.count(Player, room_id=room_id)
        for attempt in range(settings.JOIN_RETRY_ATTEMPTS):
            try:
                player = await self.store.insert(Player(
                    room_id=room_id,
                    display_name=display_name,
                    turn_order=turn_order,
                ))
                logger.info(f"{display_name} joined room {room_code} at turn order {turn_order}")
                return RoomJoined(code=room_code, room_id=room_id, player_id=player.id,
                                  turn_order=player.turn_order)
            except ConflictError:
                highest = await self.store.max_value(Player, "turn_order", room_id=room_id)
                turn_order = (highest if highest is not None else -1) + 1
                logger.info(f"Turn order collision in room {room_code}, retrying with {turn_order} "
                            f"(attempt {attempt + 1})")

        raise ConflictError("could not assign a unique turn order, try again")

    async def players(self, room_id: str) -> List[Player]:
        return await self.store.select(Player, room_id=room_id, order_by=(Player.turn_order,))

    async def alive_players(self, room_id: str) -> List[Player]:
        return await self.store.select(Player, room_id=room_id, is_alive=True,
                                       order_by=(Player.turn_order,))

    async def by_id(self, player_id: str) -> Player:
        player = await self.store.get(Player, player_id)
        if player is None:
            raise NotFoundError("player not found", detail={"player_id": player_id})
        return player

    @staticmethod
    def is_host(room: Room, player_id: str) -> bool:
        """房主 = 身份与房间创建者一致的玩家"""
        return room.is_host(player_id)
