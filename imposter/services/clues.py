"""
Clue ledger service
线索记录服务 - 每位玩家每轮一条线索，按提交顺序记录
"""

import logging
from typing import List

from imposter.core.config import settings
from imposter.core.exceptions import ConflictError, NotFoundError, ValidationError
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.round import Round, Clue

logger = logging.getLogger(__name__)


class ClueLedger:
    """线索记录类"""

    def __init__(self, store: RowStore):
        self.store = store

    @staticmethod
    def validate_text(text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise ValidationError("clue must not be empty")
        if len(text) > settings.MAX_CLUE_LENGTH:
            raise ValidationError(f"clue must be at most {settings.MAX_CLUE_LENGTH} characters")
        return text

    async def submit_clue(self, round_id: str, player_id: str, text: str) -> Clue:
        """提交线索"""
        text = self.validate_text(text)

        game_round = await self.store.get(Round, round_id)
        if game_round is None:
            raise NotFoundError("round not found", detail={"round_id": round_id})
        player = await self.store.get(Player, player_id)
        if player is None or player.room_id != game_round.room_id:
            raise ValidationError("player is not seated in this room")
        if not player.is_alive:
            raise ValidationError("eliminated players cannot give clues")

        if await self.store.select(Clue, round_id=round_id, player_id=player_id, limit=1):
            raise ConflictError("clue already submitted this round")

        turn_order = await self.store.count(Clue, round_id=round_id)
        for _ in range(settings.JOIN_RETRY_ATTEMPTS):
            try:
                clue = await self.store.insert(Clue(
                    round_id=round_id,
                    player_id=player_id,
                    text=text,
                    turn_order=turn_order,
                ))
                logger.info(f"Clue #{turn_order} recorded for round {round_id}")
                return clue
            except ConflictError:
                # 同一玩家重复提交，或与他人抢到了同一个顺序号
                if await self.store.select(Clue, round_id=round_id, player_id=player_id, limit=1):
                    raise
                highest = await self.store.max_value(Clue, "turn_order", round_id=round_id)
                turn_order = (highest if highest is not None else -1) + 1

        raise ConflictError("could not record clue, try again")

    async def clues(self, round_id: str) -> List[Clue]:
        return await self.store.select(Clue, round_id=round_id, order_by=(Clue.turn_order,))

    async def clue_count(self, round_id: str) -> int:
        return await self.store.count(Clue, round_id=round_id)

    async def all_submitted(self, round_id: str, alive_count: int) -> bool:
        return await self.clue_count(round_id) >= alive_count
