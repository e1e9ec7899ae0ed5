"""
Game Pydantic schemas
游戏数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict
from enum import Enum


class GamePhase(str, Enum):
    """游戏阶段枚举"""
    WAITING = "waiting"
    ROLE_REVEAL = "role_reveal"
    CLUE_PHASE = "clue_phase"
    VOTING = "voting"
    RESULTS = "results"


class RoundOutcome(str, Enum):
    """轮次结果枚举"""
    INNOCENTS = "innocents"
    IMPOSTERS = "imposters"
    CONTINUE = "continue"

    @property
    def is_terminal(self) -> bool:
        return self != RoundOutcome.CONTINUE


class ClueCreate(BaseModel):
    """线索提交请求"""
    text: str = Field(..., description="线索内容，长度校验在 ClueLedger 中完成")


class ChatCreate(BaseModel):
    """聊天消息请求"""
    message: str = Field(..., description="消息内容，长度校验在 RoomChat 中完成")


class VoteCreate(BaseModel):
    """投票请求"""
    target_id: str = Field(..., description="投票目标玩家ID")


class GuessCreate(BaseModel):
    """卧底猜词请求"""
    guess: str = Field(..., min_length=1, max_length=100)


class VoteResult(BaseModel):
    """投票结算结果"""
    round_id: str
    vote_counts: Dict[str, int]
    eliminated_id: Optional[str] = None
    eliminated_was_imposter: Optional[bool] = None
    outcome: RoundOutcome
    alive_imposters: int
    alive_innocents: int


class GuessResult(BaseModel):
    """猜词结果"""
    round_id: str
    player_id: str
    correct: bool
    outcome: RoundOutcome


class PhaseChange(BaseModel):
    """阶段变更结果"""
    room_id: str
    phase: GamePhase
    generation: int
    applied: bool = True
    round_id: Optional[str] = None
    round_number: Optional[int] = None
