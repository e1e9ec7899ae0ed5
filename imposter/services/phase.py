"""
Phase controller service
阶段控制服务 - 守护各阶段允许的操作，并以条件更新驱动阶段转换
"""

import random
import logging
from typing import Iterable, Optional, Tuple, Union

from imposter.core.config import settings
from imposter.core.exceptions import ConflictError, InvalidPhaseError, NotFoundError, ValidationError
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.room import Room
from imposter.models.round import Round, Clue, Vote
from imposter.schemas.game import GamePhase, RoundOutcome, PhaseChange, VoteResult, GuessResult
from imposter.services.clues import ClueLedger
from imposter.services.directory import SessionDirectory
from imposter.services.roles import RoleAssignor
from imposter.services.roster import RosterManager
from imposter.services.votes import VoteTally
from imposter.services.words import WordCatalog

logger = logging.getLogger(__name__)

AllowedPhases = Union[GamePhase, Iterable[GamePhase]]


def _phases(phases: AllowedPhases) -> Tuple[GamePhase, ...]:
    if isinstance(phases, GamePhase):
        return (phases,)
    return tuple(phases)


class PhaseController:
    """
    游戏阶段状态机
    waiting → role_reveal → clue_phase → voting → results → (role_reveal | clue_phase)
    """

    def __init__(self, store: RowStore, catalog: Optional[WordCatalog] = None,
                 rng: Optional[random.Random] = None, auto_advance_clues: Optional[bool] = None):
        self.store = store
        self.directory = SessionDirectory(store, catalog, rng)
        self.roster = RosterManager(store, self.directory)
        self.roles = RoleAssignor(store, catalog, rng)
        self.ledger = ClueLedger(store)
        self.tally = VoteTally(store)
        self.auto_advance_clues = (settings.AUTO_ADVANCE_CLUES if auto_advance_clues is None
                                   else auto_advance_clues)

    # ------------------------------------------------------------------ guards

    @staticmethod
    def require_phase(room: Room, action: str, phases: AllowedPhases):
        allowed = _phases(phases)
        if room.phase not in allowed:
            raise InvalidPhaseError(action, allowed, room.phase)

    @staticmethod
    def require_host(room: Room, actor_id: str, action: str):
        if not room.is_host(actor_id):
            raise ValidationError(f"only the host can {action}")

    async def current_round(self, room: Room) -> Round:
        rounds = await self.store.select(Round, room_id=room.id,
                                         order_by=(Round.round_number.desc(),), limit=1)
        if not rounds:
            raise NotFoundError("no round has started in this room", detail={"room_id": room.id})
        return rounds[0]

    async def transition(self, room_id: str, from_phase: GamePhase, to_phase: GamePhase,
                         generation: Optional[int] = None) -> bool:
        """Compare-and-swap on the room phase; bumps the timer generation"""
        expected = {"phase": from_phase}
        if generation is not None:
            expected["phase_generation"] = generation
        applied = await self.store.update(
            Room, room_id,
            {"phase": to_phase, "phase_generation": Room.phase_generation + 1},
            expected=expected,
        )
        if applied:
            logger.info(f"Room {room_id}: {from_phase.value} → {to_phase.value}")
        else:
            logger.debug(f"Room {room_id}: {from_phase.value} → {to_phase.value} lost the race")
        return applied

    async def _change(self, room_id: str, applied: bool, game_round: Optional[Round] = None) -> PhaseChange:
        room = await self.directory.get_room(room_id)
        return PhaseChange(
            room_id=room_id,
            phase=room.phase,
            generation=room.phase_generation,
            applied=applied,
            round_id=game_round.id if game_round else None,
            round_number=game_round.round_number if game_round else None,
        )

    # ------------------------------------------------------------- lifecycle

    async def start_game(self, room_id: str, actor_id: str) -> PhaseChange:
        """开始游戏（仅房主）：waiting → role_reveal，并分配第一轮角色"""
        room = await self.directory.get_room(room_id)
        self.require_host(room, actor_id, "start the game")
        self.require_phase(room, "start_game", GamePhase.WAITING)

        player_count = await self.store.count(Player, room_id=room_id)
        if player_count < settings.MIN_PLAYERS_TO_START:
            raise ValidationError(
                f"at least {settings.MIN_PLAYERS_TO_START} players are needed, room has {player_count}"
            )

        if not await self.transition(room_id, GamePhase.WAITING, GamePhase.ROLE_REVEAL):
            return await self._change(room_id, applied=False)

        game_round = await self.roles.assign(room)
        return await self._change(room_id, applied=True, game_round=game_round)

    async def begin_clues(self, room_id: str, actor_id: str) -> PhaseChange:
        """房主确认所有人已查看身份：role_reveal → clue_phase"""
        room = await self.directory.get_room(room_id)
        self.require_host(room, actor_id, "start the clue phase")
        self.require_phase(room, "begin_clues", GamePhase.ROLE_REVEAL)
        applied = await self.transition(room_id, GamePhase.ROLE_REVEAL, GamePhase.CLUE_PHASE)
        return await self._change(room_id, applied)

    async def next_round(self, room_id: str, actor_id: str) -> PhaseChange:
        """下一轮：results → role_reveal，重新分配角色"""
        room = await self.directory.get_room(room_id)
        self.require_host(room, actor_id, "start the next round")
        self.require_phase(room, "next_round", GamePhase.RESULTS)

        if not await self.transition(room_id, GamePhase.RESULTS, GamePhase.ROLE_REVEAL):
            return await self._change(room_id, applied=False)

        game_round = await self.roles.assign(room)
        return await self._change(room_id, applied=True, game_round=game_round)

    async def restart_round(self, room_id: str, actor_id: str,
                            generation: Optional[int] = None) -> PhaseChange:
        """
        重新开始本轮线索阶段（房主确认）
        From clue_phase (timer expired) only the clues are cleared. From a
        non-terminal results phase the clues, votes and outcome are cleared and
        the surviving roster keeps its roles. ``generation`` pins the request
        to the phase instance the caller observed so repeated clicks are no-ops.
        """
        room = await self.directory.get_room(room_id)
        self.require_host(room, actor_id, "restart the round")
        self.require_phase(room, "restart_round", (GamePhase.CLUE_PHASE, GamePhase.RESULTS))
        from_phase, seen = room.phase, room.phase_generation
        if generation is not None and generation != seen:
            logger.debug(f"Restart for stale generation {generation} in room {room_id} ignored")
            return await self._change(room_id, applied=False)

        game_round = await self.current_round(room)
        if from_phase == GamePhase.RESULTS and game_round.outcome != RoundOutcome.CONTINUE:
            raise InvalidPhaseError("restart_round", GamePhase.CLUE_PHASE, from_phase)

        # 先抢到阶段转换，失败方不做任何清理
        applied = await self.transition(room_id, from_phase, GamePhase.CLUE_PHASE,
                                        generation=seen)
        if not applied:
            return await self._change(room_id, applied=False, game_round=game_round)

        if from_phase == GamePhase.RESULTS:
            reset = await self.store.update(
                Round, game_round.id,
                {"outcome": None, "eliminated_id": None, "guess_player_id": None, "guess_text": None},
                expected={"outcome": RoundOutcome.CONTINUE},
            )
            if not reset:
                # 最后猜词抢先结束了本轮，退回结果阶段
                await self.transition(room_id, GamePhase.CLUE_PHASE, GamePhase.RESULTS,
                                      generation=seen + 1)
                raise ConflictError("the round was decided before it could be restarted")
            await self.store.delete(Vote, round_id=game_round.id)

        await self.store.delete(Clue, round_id=game_round.id)
        return await self._change(room_id, applied, game_round)

    # ----------------------------------------------------------------- clues

    async def submit_clue(self, room_id: str, player_id: str, text: str) -> Clue:
        room = await self.directory.get_room(room_id)
        self.require_phase(room, "submit_clue", GamePhase.CLUE_PHASE)
        game_round = await self.current_round(room)

        clue = await self.ledger.submit_clue(game_round.id, player_id, text)
        if self.auto_advance_clues:
            await self.advance_if_clues_complete(room_id)
        return clue

    async def advance_if_clues_complete(self, room_id: str) -> bool:
        """所有存活玩家提交线索后进入投票；重复调用无副作用"""
        room = await self.directory.get_room(room_id)
        if room.phase != GamePhase.CLUE_PHASE:
            return False
        game_round = await self.current_round(room)
        alive = await self.store.count(Player, room_id=room_id, is_alive=True)
        if not await self.ledger.all_submitted(game_round.id, alive):
            return False
        return await self.transition(room_id, GamePhase.CLUE_PHASE, GamePhase.VOTING)

    async def close_clues(self, room_id: str, actor_id: str) -> PhaseChange:
        """房主手动结束线索阶段"""
        room = await self.directory.get_room(room_id)
        self.require_host(room, actor_id, "close the clue phase")
        self.require_phase(room, "close_clues", GamePhase.CLUE_PHASE)
        applied = await self.transition(room_id, GamePhase.CLUE_PHASE, GamePhase.VOTING)
        return await self._change(room_id, applied)

    # ----------------------------------------------------------------- votes

    async def submit_vote(self, room_id: str, voter_id: str,
                          target_id: str) -> Tuple[Vote, Optional[VoteResult]]:
        room = await self.directory.get_room(room_id)
        self.require_phase(room, "submit_vote", GamePhase.VOTING)
        game_round = await self.current_round(room)

        vote = await self.tally.submit_vote(game_round.id, voter_id, target_id)
        result = await self.resolve_if_complete(room_id)
        return vote, result

    async def resolve_if_complete(self, room_id: str) -> Optional[VoteResult]:
        """任何客户端都可调用；票数齐全时结算，只有第一个成功者生效"""
        room = await self.directory.get_room(room_id)
        if room.phase != GamePhase.VOTING:
            return None
        game_round = await self.current_round(room)
        alive = await self.store.count(Player, room_id=room_id, is_alive=True)
        if not await self.tally.all_voted(game_round.id, alive):
            return None
        return await self.tally.resolve(room_id, game_round.id)

    # ------------------------------------------------------------ last guess

    async def submit_guess(self, room_id: str, player_id: str, guess: str) -> GuessResult:
        """卧底最后猜词：猜中则卧底获胜，猜错则平民获胜，本轮结束"""
        room = await self.directory.get_room(room_id)
        self.require_phase(room, "submit_guess", GamePhase.RESULTS)
        game_round = await self.current_round(room)
        if game_round.outcome != RoundOutcome.CONTINUE:
            raise ConflictError("no last-chance guess is available for this round")

        player = await self.roster.by_id(player_id)
        if player.room_id != room_id or not player.is_imposter or not player.is_alive:
            raise ValidationError("only an alive imposter can guess the word")

        guess = (guess or "").strip()
        if not guess:
            raise ValidationError("guess must not be empty")

        recorded = await self.store.update(
            Round, game_round.id,
            {"guess_player_id": player_id, "guess_text": guess},
            expected={"guess_player_id": None, "outcome": RoundOutcome.CONTINUE},
        )
        if not recorded:
            raise ConflictError("a guess was already made this round")

        correct = guess.lower() == game_round.secret_word.strip().lower()
        decided = RoundOutcome.IMPOSTERS if correct else RoundOutcome.INNOCENTS
        outcome = RoundOutcome.CONTINUE
        flipped = await self.store.update(
            Round, game_round.id, {"outcome": decided},
            expected={"outcome": RoundOutcome.CONTINUE},
        )
        if flipped:
            outcome = decided
            players = await self.roster.players(room_id)
            await self.tally.award_scores(players, outcome)

        logger.info(f"Imposter guess in room {room.code} round {game_round.round_number}: "
                    f"{'correct' if correct else 'wrong'}")
        return GuessResult(round_id=game_round.id, player_id=player_id, correct=correct, outcome=outcome)
