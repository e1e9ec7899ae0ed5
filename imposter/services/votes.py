"""
Vote tally and elimination service
投票统计与淘汰服务 - 统计票数、淘汰玩家并判定胜负
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from imposter.core.config import settings
from imposter.core.exceptions import ConflictError, NotFoundError, ValidationError
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.room import Room
from imposter.models.round import Round, Vote
from imposter.schemas.game import GamePhase, RoundOutcome, VoteResult

logger = logging.getLogger(__name__)


def tally_votes(votes: Iterable[Vote]) -> Dict[str, int]:
    """Count one vote per voter; a repeated voter keeps only the first row"""
    seen = set()
    counts: Counter = Counter()
    for vote in votes:
        if vote.voter_id in seen:
            continue
        seen.add(vote.voter_id)
        counts[vote.target_id] += 1
    return dict(counts)


def choose_elimination(vote_counts: Mapping[str, int], turn_orders: Mapping[str, int]) -> Optional[str]:
    """
    Player with the most votes; ties go to the lowest turn order.
    Targets without a known turn order sort last so the choice stays deterministic.
    """
    if not vote_counts:
        return None
    top = max(vote_counts.values())
    tied = [target for target, count in vote_counts.items() if count == top]
    return min(tied, key=lambda target: (turn_orders.get(target, float("inf")), target))


def evaluate_outcome(alive_imposters: int, alive_innocents: int) -> RoundOutcome:
    """胜负判定（使用淘汰后的存活人数）"""
    if alive_imposters == 0:
        return RoundOutcome.INNOCENTS
    if alive_imposters >= alive_innocents:
        return RoundOutcome.IMPOSTERS
    return RoundOutcome.CONTINUE


def alive_counts(players: Iterable[Player], eliminated_id: Optional[str] = None) -> Tuple[int, int]:
    imposters = innocents = 0
    for player in players:
        if not player.is_alive or player.id == eliminated_id:
            continue
        if player.is_imposter:
            imposters += 1
        else:
            innocents += 1
    return imposters, innocents


class VoteTally:
    """投票统计与淘汰引擎"""

    def __init__(self, store: RowStore):
        self.store = store

    async def submit_vote(self, round_id: str, voter_id: str, target_id: str) -> Vote:
        """提交投票"""
        game_round = await self.store.get(Round, round_id)
        if game_round is None:
            raise NotFoundError("round not found", detail={"round_id": round_id})

        voter = await self.store.get(Player, voter_id)
        if voter is None or voter.room_id != game_round.room_id or not voter.is_alive:
            raise ValidationError("only alive players in this room can vote")
        if target_id == voter_id:
            raise ValidationError("players cannot vote for themselves")
        target = await self.store.get(Player, target_id)
        if target is None or target.room_id != game_round.room_id or not target.is_alive:
            raise ValidationError("vote target must be an alive player in this room")

        if await self.store.select(Vote, round_id=round_id, voter_id=voter_id, limit=1):
            raise ConflictError("already voted this round")

        vote = await self.store.insert(Vote(round_id=round_id, voter_id=voter_id, target_id=target_id))
        logger.info(f"Vote recorded in round {round_id}")
        return vote

    async def votes(self, round_id: str) -> List[Vote]:
        return await self.store.select(Vote, round_id=round_id, order_by=(Vote.created_at,))

    async def vote_count(self, round_id: str) -> int:
        return await self.store.count(Vote, round_id=round_id)

    async def all_voted(self, round_id: str, alive_count: int) -> bool:
        return await self.vote_count(round_id) >= alive_count

    async def resolve(self, room_id: str, round_id: str) -> Optional[VoteResult]:
        """
        结算投票
        The phase flip voting → results is the single conditional update that
        decides which caller performs elimination; every other caller gets None.
        """
        game_round = await self.store.get(Round, round_id)
        if game_round is None or game_round.room_id != room_id:
            raise NotFoundError("round not found", detail={"round_id": round_id})

        applied = await self.store.update(
            Room, room_id,
            {"phase": GamePhase.RESULTS, "phase_generation": Room.phase_generation + 1},
            expected={"phase": GamePhase.VOTING},
        )
        if not applied:
            logger.debug(f"Round {round_id} already resolved by another client")
            return None

        votes = await self.votes(round_id)
        players = await self.store.select(Player, room_id=room_id, order_by=(Player.turn_order,))
        counts = tally_votes(votes)
        eliminated_id = choose_elimination(counts, {p.id: p.turn_order for p in players})

        eliminated = next((p for p in players if p.id == eliminated_id), None)
        if eliminated is not None:
            await self.store.update(Player, eliminated.id, {"is_alive": False})

        alive_imposters, alive_innocents = alive_counts(players, eliminated_id)
        outcome = evaluate_outcome(alive_imposters, alive_innocents)

        await self.store.update(
            Round, round_id,
            {"outcome": outcome, "eliminated_id": eliminated_id},
            expected={"outcome": None},
        )
        if outcome.is_terminal:
            await self.award_scores(players, outcome)

        logger.info(f"Round {game_round.round_number} of room {room_id} resolved: "
                    f"eliminated={eliminated_id} outcome={outcome.value}")
        return VoteResult(
            round_id=round_id,
            vote_counts=counts,
            eliminated_id=eliminated_id,
            eliminated_was_imposter=eliminated.is_imposter if eliminated is not None else None,
            outcome=outcome,
            alive_imposters=alive_imposters,
            alive_innocents=alive_innocents,
        )

    async def award_scores(self, players: Iterable[Player], outcome: RoundOutcome):
        """Cumulative score: winners of a terminal outcome gain points"""
        if outcome == RoundOutcome.INNOCENTS:
            winners = [p for p in players if not p.is_imposter]
            points = settings.INNOCENT_WIN_POINTS
        elif outcome == RoundOutcome.IMPOSTERS:
            winners = [p for p in players if p.is_imposter]
            points = settings.IMPOSTER_WIN_POINTS
        else:
            return

        for player in winners:
            await self.store.update(Player, player.id, {"score": Player.score + points})
        logger.info(f"Awarded {points} points to {len(winners)} {outcome.value}")
