"""
Room Pydantic schemas
房间数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from imposter.core.config import settings
from imposter.schemas.game import GamePhase, RoundOutcome


class RoomConfig(BaseModel):
    """创建房间配置；一致性校验在 SessionDirectory 中完成"""
    num_players: int = Field(default=4, description="计划玩家数")
    num_imposters: int = Field(default=1, description="卧底数量")
    categories: List[str] = Field(default_factory=lambda: ["Objects", "Places"], description="词汇类别")
    hint_enabled: bool = Field(default=True, description="卧底是否获得提示词")
    clue_seconds: int = Field(default_factory=lambda: settings.DEFAULT_CLUE_SECONDS, ge=5, le=600)
    vote_seconds: int = Field(default_factory=lambda: settings.DEFAULT_VOTE_SECONDS, ge=5, le=600)
    max_rounds: int = Field(default_factory=lambda: settings.DEFAULT_MAX_ROUNDS, ge=1, le=100)


class RoomCreate(BaseModel):
    """创建房间请求"""
    creator_name: str
    config: RoomConfig = Field(default_factory=RoomConfig)


class RoomJoinRequest(BaseModel):
    """加入房间请求"""
    display_name: str


class RoomCreated(BaseModel):
    """创建房间响应"""
    code: str
    room_id: str
    player_id: str


class RoomJoined(BaseModel):
    """加入房间响应"""
    code: str
    room_id: str
    player_id: str
    turn_order: int


class RowState(BaseModel):
    id: str
    version: int

    class Config:
        from_attributes = True


class RoomState(RowState):
    code: str
    creator_id: str
    num_players: int
    num_imposters: int
    categories: List[str]
    hint_enabled: bool
    phase: GamePhase
    phase_generation: int
    current_round: int
    created_at: Optional[datetime] = None


class PlayerState(RowState):
    room_id: str
    display_name: str
    is_imposter: bool
    secret: Optional[str] = None
    is_alive: bool
    turn_order: int
    score: int


class RoundState(RowState):
    room_id: str
    round_number: int
    secret_word: str
    category: Optional[str] = None
    hint: Optional[str] = None
    outcome: Optional[RoundOutcome] = None
    eliminated_id: Optional[str] = None
    guess_player_id: Optional[str] = None
    guess_text: Optional[str] = None


class ClueState(RowState):
    round_id: str
    player_id: str
    text: str
    turn_order: int


class VoteState(RowState):
    round_id: str
    voter_id: str
    target_id: str


class SettingsState(RowState):
    room_id: str
    clue_seconds: int
    vote_seconds: int
    max_rounds: int


class RoomSnapshot(BaseModel):
    """房间完整快照（客户端轮询使用）"""
    room: RoomState
    players: List[PlayerState]
    round: Optional[RoundState] = None
    clues: List[ClueState] = Field(default_factory=list)
    votes: List[VoteState] = Field(default_factory=list)
    settings: Optional[SettingsState] = None


class ChatMessageState(RowState):
    room_id: str
    player_id: str
    username: str
    message: str
    created_at: Optional[datetime] = None
