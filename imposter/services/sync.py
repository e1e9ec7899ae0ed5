"""
Client synchronization layer
客户端同步层 - 将推送通知与定时轮询合并为一致的本地视图
"""

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from imposter.core.config import settings
from imposter.core.exceptions import ConflictError, PhaseTimeoutError
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.models.room import Room, GameSettings
from imposter.models.round import Round, Clue, Vote
from imposter.realtime.change_feed import ChangeFeed, Subscription, change_feed
from imposter.schemas.game import GamePhase
from imposter.schemas.room import (
    RoomState, PlayerState, RoundState, ClueState, VoteState, SettingsState, RoomSnapshot,
    ChatMessageState,
)
from imposter.services.chat import RoomChat
from imposter.services.phase import PhaseController

logger = logging.getLogger(__name__)

Listener = Callable[["ClientSession"], Any]


async def load_room_snapshot(store: RowStore, room_id: str) -> Optional[RoomSnapshot]:
    """Read every entity a client caches for one room"""
    room = await store.get(Room, room_id)
    if room is None:
        return None
    players = await store.select(Player, room_id=room_id, order_by=(Player.turn_order,))
    rounds = await store.select(Round, room_id=room_id, order_by=(Round.round_number.desc(),), limit=1)
    game_settings = await store.select(GameSettings, room_id=room_id, limit=1)

    clues: List[Clue] = []
    votes: List[Vote] = []
    if rounds:
        clues = await store.select(Clue, round_id=rounds[0].id, order_by=(Clue.turn_order,))
        votes = await store.select(Vote, round_id=rounds[0].id, order_by=(Vote.created_at,))

    return RoomSnapshot(
        room=RoomState.model_validate(room),
        players=[PlayerState.model_validate(p) for p in players],
        round=RoundState.model_validate(rounds[0]) if rounds else None,
        clues=[ClueState.model_validate(c) for c in clues],
        votes=[VoteState.model_validate(v) for v in votes],
        settings=SettingsState.model_validate(game_settings[0]) if game_settings else None,
    )


@dataclass
class ClientSession:
    """
    One client's view of a room.
    Only a Reconciler writes to it; everything else reads.
    """

    player_id: str
    room: Optional[RoomState] = None
    players: List[PlayerState] = field(default_factory=list)
    round: Optional[RoundState] = None
    clues: List[ClueState] = field(default_factory=list)
    votes: List[VoteState] = field(default_factory=list)
    settings: Optional[SettingsState] = None
    messages: List[ChatMessageState] = field(default_factory=list)

    @property
    def room_id(self) -> Optional[str]:
        return self.room.id if self.room else None

    @property
    def phase(self) -> Optional[GamePhase]:
        return self.room.phase if self.room else None

    @property
    def generation(self) -> Optional[int]:
        return self.room.phase_generation if self.room else None

    @property
    def me(self) -> Optional[PlayerState]:
        return next((p for p in self.players if p.id == self.player_id), None)

    @property
    def is_host(self) -> bool:
        return self.room is not None and self.room.creator_id == self.player_id

    @property
    def alive_players(self) -> List[PlayerState]:
        return [p for p in self.players if p.is_alive]

    @property
    def my_clue(self) -> Optional[ClueState]:
        return next((c for c in self.clues if c.player_id == self.player_id), None)

    @property
    def my_vote(self) -> Optional[VoteState]:
        return next((v for v in self.votes if v.voter_id == self.player_id), None)

    def vote_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for vote in self.votes:
            counts[vote.target_id] = counts.get(vote.target_id, 0) + 1
        return counts

    @property
    def all_clues_in(self) -> bool:
        return bool(self.alive_players) and len(self.clues) >= len(self.alive_players)

    @property
    def all_votes_in(self) -> bool:
        return bool(self.alive_players) and len(self.votes) >= len(self.alive_players)

    @property
    def rounds_remaining(self) -> Optional[int]:
        """Advisory only; nothing stops the host from playing on"""
        if self.settings is None:
            return None
        played = self.round.round_number if self.round else 0
        return max(0, self.settings.max_rounds - played)

    def phase_seconds(self) -> Optional[int]:
        if self.settings is None:
            return None
        if self.phase == GamePhase.CLUE_PHASE:
            return self.settings.clue_seconds
        if self.phase == GamePhase.VOTING:
            return self.settings.vote_seconds
        return None

    def scoreboard(self) -> List[PlayerState]:
        return sorted(self.players, key=lambda p: (-p.score, p.turn_order))


def _is_newer(cached, incoming) -> bool:
    if incoming is None:
        return False
    if cached is None or cached.id != incoming.id:
        return True
    return incoming.version > cached.version


class Reconciler:
    """
    版本化合并
    Single rows only move forward in version. Collections are whole
    snapshots tagged with a local fetch sequence number: a snapshot fetched
    earlier than the one already applied is stale and dropped.
    """

    def __init__(self, session: ClientSession):
        self.session = session
        self._sequence = itertools.count(1)
        self._applied: Dict[str, int] = {}

    def next_seq(self) -> int:
        return next(self._sequence)

    def apply_snapshot(self, snapshot: RoomSnapshot, seq: Optional[int] = None) -> bool:
        seq = seq if seq is not None else self.next_seq()
        changed = self.apply_room(snapshot.room)
        changed |= self.apply_settings(snapshot.settings)
        changed |= self.apply_players(seq, snapshot.players)
        changed |= self.apply_round(snapshot.round)
        if snapshot.round is not None:
            changed |= self.apply_clues(seq, snapshot.round.id, snapshot.clues)
            changed |= self.apply_votes(seq, snapshot.round.id, snapshot.votes)
        return changed

    def apply_room(self, room: Optional[RoomState]) -> bool:
        if not _is_newer(self.session.room, room):
            return False
        self.session.room = room
        return True

    def apply_settings(self, game_settings: Optional[SettingsState]) -> bool:
        if not _is_newer(self.session.settings, game_settings):
            return False
        self.session.settings = game_settings
        return True

    def apply_round(self, game_round: Optional[RoundState]) -> bool:
        cached = self.session.round
        if game_round is None:
            return False
        if cached is not None and cached.id != game_round.id:
            if game_round.round_number <= cached.round_number:
                return False
            # 新一轮：旧轮次的线索和投票作废
            self.session.clues = []
            self.session.votes = []
            self._applied.pop("clues", None)
            self._applied.pop("votes", None)
        elif not _is_newer(cached, game_round):
            return False
        self.session.round = game_round
        return True

    def apply_players(self, seq: int, rows: List[PlayerState]) -> bool:
        return self._apply_collection("players", seq, rows)

    def apply_clues(self, seq: int, round_id: str, rows: List[ClueState]) -> bool:
        if self.session.round is None or self.session.round.id != round_id:
            return False
        return self._apply_collection("clues", seq, rows)

    def apply_votes(self, seq: int, round_id: str, rows: List[VoteState]) -> bool:
        if self.session.round is None or self.session.round.id != round_id:
            return False
        return self._apply_collection("votes", seq, rows)

    def apply_messages(self, seq: int, rows: List[ChatMessageState]) -> bool:
        return self._apply_collection("messages", seq, rows)

    def _apply_collection(self, name: str, seq: int, rows: list) -> bool:
        if seq <= self._applied.get(name, 0):
            logger.debug(f"Dropping stale {name} snapshot #{seq}")
            return False
        self._applied[name] = seq

        cached = {row.id: row for row in getattr(self.session, name)}
        merged = []
        for row in rows:
            previous = cached.get(row.id)
            merged.append(previous if previous is not None and previous.version > row.version else row)

        if merged == getattr(self.session, name):
            return False
        setattr(self.session, name, merged)
        return True


class PhaseTimer:
    """
    本地阶段倒计时
    Keyed by (phase, generation): every client resets together when the
    shared generation token moves, whatever its own timer was doing.
    """

    def __init__(self, on_expire: Callable[[PhaseTimeoutError], Any]):
        self.on_expire = on_expire
        self.key: Optional[Tuple[GamePhase, int]] = None
        self.deadline: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    def sync(self, session: ClientSession) -> bool:
        """Restart the countdown if the phase instance changed"""
        if session.room is None:
            return False
        key = (session.phase, session.generation)
        if key == self.key:
            return False
        self.cancel()
        self.key = key

        seconds = session.phase_seconds()
        if seconds:
            loop = asyncio.get_running_loop()
            self.deadline = loop.time() + seconds
            self._task = asyncio.create_task(self._run(session.phase, session.generation, seconds))
        return True

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    async def _run(self, phase: GamePhase, generation: int, seconds: float):
        await asyncio.sleep(seconds)
        self.deadline = None
        result = self.on_expire(PhaseTimeoutError(phase, generation))
        if asyncio.iscoroutine(result):
            await result

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        self.deadline = None


class SyncClient:
    """
    同步客户端
    Push notifications and the fixed-interval poll both end in the same
    refresh_* calls, which write through the Reconciler.
    """

    ROOM_TABLES = ("rooms", "players", "rounds", "game_settings", "chat_messages")
    ROUND_TABLES = ("clues", "votes")

    def __init__(
        self,
        session_factory: async_sessionmaker,
        session: ClientSession,
        room_id: str,
        feed: Optional[ChangeFeed] = None,
        poll_interval: Optional[float] = None,
        timer: Optional[PhaseTimer] = None,
        drive_transitions: bool = True,
    ):
        self.session_factory = session_factory
        self.session = session
        self.room_id = room_id
        self.feed = feed if feed is not None else change_feed
        self.poll_interval = poll_interval if poll_interval is not None else settings.POLL_INTERVAL
        self.timer = timer
        self.drive_transitions = drive_transitions
        self.reconciler = Reconciler(session)

        self._listeners: List[Listener] = []
        self._room_subscriptions: List[Subscription] = []
        self._round_subscriptions: List[Subscription] = []
        self._subscribed_round: Optional[str] = None
        self._tasks: List[asyncio.Task] = []
        self._round_tasks: List[asyncio.Task] = []
        self.running = False

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    @asynccontextmanager
    async def _store(self):
        async with self.session_factory() as db:
            yield RowStore(db, self.feed)

    # ---------------------------------------------------------------- fetches

    async def refresh_room(self) -> bool:
        async with self._store() as store:
            room = await store.get(Room, self.room_id)
        return await self._changed(self.reconciler.apply_room(
            RoomState.model_validate(room) if room else None))

    async def refresh_settings(self) -> bool:
        async with self._store() as store:
            rows = await store.select(GameSettings, room_id=self.room_id, limit=1)
        return await self._changed(self.reconciler.apply_settings(
            SettingsState.model_validate(rows[0]) if rows else None))

    async def refresh_messages(self) -> bool:
        seq = self.reconciler.next_seq()
        async with self._store() as store:
            rows = await RoomChat(store).messages(self.room_id)
        return await self._changed(self.reconciler.apply_messages(
            seq, [ChatMessageState.model_validate(m) for m in rows]))

    async def refresh_players(self) -> bool:
        seq = self.reconciler.next_seq()
        async with self._store() as store:
            rows = await store.select(Player, room_id=self.room_id, order_by=(Player.turn_order,))
        return await self._changed(self.reconciler.apply_players(
            seq, [PlayerState.model_validate(p) for p in rows]))

    async def refresh_round(self) -> bool:
        async with self._store() as store:
            rows = await store.select(Round, room_id=self.room_id,
                                      order_by=(Round.round_number.desc(),), limit=1)
        changed = self.reconciler.apply_round(RoundState.model_validate(rows[0]) if rows else None)
        if changed:
            self._resubscribe_round()
            await self.refresh_clues()
            await self.refresh_votes()
        return await self._changed(changed)

    async def refresh_clues(self) -> bool:
        game_round = self.session.round
        if game_round is None:
            return False
        seq = self.reconciler.next_seq()
        async with self._store() as store:
            rows = await store.select(Clue, round_id=game_round.id, order_by=(Clue.turn_order,))
        return await self._changed(self.reconciler.apply_clues(
            seq, game_round.id, [ClueState.model_validate(c) for c in rows]))

    async def refresh_votes(self) -> bool:
        game_round = self.session.round
        if game_round is None:
            return False
        seq = self.reconciler.next_seq()
        async with self._store() as store:
            rows = await store.select(Vote, round_id=game_round.id, order_by=(Vote.created_at,))
        return await self._changed(self.reconciler.apply_votes(
            seq, game_round.id, [VoteState.model_validate(v) for v in rows]))

    async def refresh_all(self) -> bool:
        changed = await self.refresh_room()
        changed |= await self.refresh_settings()
        changed |= await self.refresh_players()
        changed |= await self.refresh_round()
        changed |= await self.refresh_clues()
        changed |= await self.refresh_votes()
        changed |= await self.refresh_messages()
        return changed

    async def _changed(self, changed: bool) -> bool:
        if not changed:
            return False
        if self.timer is not None:
            self.timer.sync(self.session)
        for listener in list(self._listeners):
            result = listener(self.session)
            if asyncio.iscoroutine(result):
                await result
        if self.drive_transitions:
            await self._drive()
        return True

    async def _drive(self):
        """
        Any client that sees a completed phase may push it forward; the
        conditional updates make every duplicate attempt a no-op.
        """
        phase = self.session.phase
        if phase == GamePhase.CLUE_PHASE and self.session.all_clues_in and settings.AUTO_ADVANCE_CLUES:
            async with self._store() as store:
                await PhaseController(store).advance_if_clues_complete(self.room_id)
        elif phase == GamePhase.VOTING and self.session.all_votes_in:
            async with self._store() as store:
                await PhaseController(store).resolve_if_complete(self.room_id)

    async def restart_after_timeout(self, error: PhaseTimeoutError):
        """Host-confirmed recovery for an expired clue timer"""
        try:
            async with self._store() as store:
                return await PhaseController(store).restart_round(
                    self.room_id, self.session.player_id, generation=error.generation
                )
        except ConflictError as e:
            logger.info(f"Restart after timeout skipped: {e.message}")
            return None

    # ---------------------------------------------------------- subscriptions

    def _resubscribe_round(self):
        round_id = self.session.round.id if self.session.round else None
        if not self.running or round_id == self._subscribed_round:
            return
        for subscription in self._round_subscriptions:
            subscription.close()
        for task in self._round_tasks:
            task.cancel()
        self._round_subscriptions = []
        self._round_tasks = []
        self._subscribed_round = round_id
        if round_id is None:
            return

        handlers = {"clues": self.refresh_clues, "votes": self.refresh_votes}
        for table in self.ROUND_TABLES:
            subscription = self.feed.subscribe(table, "round_id", round_id)
            self._round_subscriptions.append(subscription)
            self._round_tasks.append(asyncio.create_task(self._consume(subscription, handlers[table])))

    async def _consume(self, subscription: Subscription, handler: Callable[[], Awaitable[bool]]):
        while True:
            await subscription.get()
            try:
                await handler()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # 下一次轮询会重试
                logger.warning(f"Refresh after {subscription.table} change failed: {e}")

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh_all()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Poll for room {self.room_id} failed, retrying next interval: {e}")

    async def start(self):
        if self.running:
            return
        self.running = True
        handlers = {
            "rooms": ("id", self.refresh_room),
            "players": ("room_id", self.refresh_players),
            "rounds": ("room_id", self.refresh_round),
            "game_settings": ("room_id", self.refresh_settings),
            "chat_messages": ("room_id", self.refresh_messages),
        }
        for table in self.ROOM_TABLES:
            column, handler = handlers[table]
            subscription = self.feed.subscribe(table, column, self.room_id)
            self._room_subscriptions.append(subscription)
            self._tasks.append(asyncio.create_task(self._consume(subscription, handler)))

        try:
            await self.refresh_all()
        except Exception as e:
            logger.warning(f"Initial sync for room {self.room_id} failed: {e}")
        self._resubscribe_round()
        self._tasks.append(asyncio.create_task(self._poll_loop()))
        logger.info(f"Sync started for player {self.session.player_id} in room {self.room_id}")

    async def stop(self):
        """离开房间：停止轮询与订阅，不需要任何补偿操作"""
        self.running = False
        for subscription in self._room_subscriptions + self._round_subscriptions:
            subscription.close()
        tasks = self._tasks + self._round_tasks
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._room_subscriptions = []
        self._round_subscriptions = []
        self._tasks = []
        self._round_tasks = []
        self._subscribed_round = None
        if self.timer is not None:
            self.timer.cancel()
        logger.info(f"Sync stopped for player {self.session.player_id} in room {self.room_id}")
