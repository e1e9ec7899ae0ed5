"""
Game flow API endpoints
游戏流程API端点 - 阶段推进、线索、投票、猜词
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from imposter.core.store import RowStore
from imposter.api.v1.endpoints.rooms import get_store, get_player_id
from imposter.services.phase import PhaseController
from imposter.schemas.game import ClueCreate, VoteCreate, GuessCreate, VoteResult, GuessResult, PhaseChange
from imposter.schemas.room import ClueState, VoteState

logger = logging.getLogger(__name__)
router = APIRouter()


class VoteResponse(BaseModel):
    """投票响应；最后一票触发结算时附带结果"""
    vote: VoteState
    result: Optional[VoteResult] = None


class ResolveResponse(BaseModel):
    resolved: bool
    result: Optional[VoteResult] = None


def get_controller(store: RowStore = Depends(get_store)) -> PhaseController:
    """获取阶段控制器依赖"""
    return PhaseController(store)


@router.post("/{room_id}/start", response_model=PhaseChange)
async def start_game(
    room_id: str,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """开始游戏（仅房主，至少3名玩家）"""
    return await controller.start_game(room_id, player_id)


@router.post("/{room_id}/begin-clues", response_model=PhaseChange)
async def begin_clues(
    room_id: str,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """身份查看结束，进入线索阶段"""
    return await controller.begin_clues(room_id, player_id)


@router.post("/{room_id}/clues", response_model=ClueState, status_code=status.HTTP_201_CREATED)
async def submit_clue(
    room_id: str,
    clue_data: ClueCreate,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """提交线索"""
    clue = await controller.submit_clue(room_id, player_id, clue_data.text)
    return ClueState.model_validate(clue)


@router.post("/{room_id}/close-clues", response_model=PhaseChange)
async def close_clues(
    room_id: str,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """房主结束线索阶段"""
    return await controller.close_clues(room_id, player_id)


@router.post("/{room_id}/votes", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def submit_vote(
    room_id: str,
    vote_data: VoteCreate,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """提交投票"""
    vote, result = await controller.submit_vote(room_id, player_id, vote_data.target_id)
    return VoteResponse(vote=VoteState.model_validate(vote), result=result)


@router.post("/{room_id}/resolve", response_model=ResolveResponse)
async def resolve_votes(room_id: str, controller: PhaseController = Depends(get_controller)):
    """任意客户端触发结算；已结算或票数不足时返回 resolved=false"""
    result = await controller.resolve_if_complete(room_id)
    return ResolveResponse(resolved=result is not None, result=result)


@router.post("/{room_id}/next-round", response_model=PhaseChange)
async def next_round(
    room_id: str,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """开始下一轮，重新分配角色"""
    return await controller.next_round(room_id, player_id)


@router.post("/{room_id}/restart", response_model=PhaseChange)
async def restart_round(
    room_id: str,
    generation: Optional[int] = Query(None, description="调用方看到的阶段代数"),
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """重新开始本轮线索阶段（保留角色）"""
    return await controller.restart_round(room_id, player_id, generation=generation)


@router.post("/{room_id}/guess", response_model=GuessResult)
async def submit_guess(
    room_id: str,
    guess_data: GuessCreate,
    player_id: str = Depends(get_player_id),
    controller: PhaseController = Depends(get_controller),
):
    """卧底最后猜词"""
    return await controller.submit_guess(room_id, player_id, guess_data.guess)
