"""
Role assignment service
角色分配服务 - 每轮随机分配卧底并发放词汇/提示
"""

import random
import logging
from typing import List, Optional, Sequence, Set

from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.room import Room
from imposter.models.round import Round, Clue, Vote
from imposter.services.words import WordCatalog, word_catalog

logger = logging.getLogger(__name__)


def imposter_count(configured: int, player_count: int) -> int:
    """At least one innocent always remains"""
    return max(0, min(configured, player_count - 1))


def partition_roles(player_ids: Sequence[str], configured_imposters: int,
                    rng: Optional[random.Random] = None) -> Set[str]:
    """Uniformly shuffle the roster and take the first seats as imposters"""
    rng = rng or random
    shuffled = list(player_ids)
    rng.shuffle(shuffled)
    return set(shuffled[:imposter_count(configured_imposters, len(shuffled))])


class RoleAssignor:
    """角色分配器"""

    def __init__(self, store: RowStore, catalog: Optional[WordCatalog] = None,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.catalog = catalog or word_catalog
        self.rng = rng or random.SystemRandom()

    async def assign(self, room: Room) -> Round:
        """
        分配角色并创建新一轮
        Everyone is revived, earlier clues and votes are dropped, and a Round
        numbered one past the previous highest is persisted.
        """
        players: List[Player] = await self.store.select(
            Player, room_id=room.id, order_by=(Player.turn_order,)
        )
        imposters = partition_roles([p.id for p in players], room.num_imposters, self.rng)
        draw = self.catalog.draw(room.categories or [], self.rng)

        for player in players:
            is_imposter = player.id in imposters
            if is_imposter:
                secret = draw.hint if room.hint_enabled else None
            else:
                secret = draw.word
            await self.store.update(Player, player.id, {
                "is_imposter": is_imposter,
                "secret": secret,
                "is_alive": True,
            })

        previous_rounds = await self.store.select(Round, room_id=room.id)
        if previous_rounds:
            round_ids = [r.id for r in previous_rounds]
            await self.store.delete(Clue, round_id=round_ids)
            await self.store.delete(Vote, round_id=round_ids)

        highest = await self.store.max_value(Round, "round_number", room_id=room.id)
        game_round = await self.store.insert(Round(
            room_id=room.id,
            round_number=(highest or 0) + 1,
            secret_word=draw.word,
            category=draw.category,
            hint=draw.hint,
        ))
        await self.store.update(Room, room.id, {"current_round": game_round.round_number})

        logger.info(f"Round {game_round.round_number} assigned in room {room.code}: "
                    f"{len(imposters)} imposter(s) among {len(players)} players, category {draw.category}")
        return game_round
