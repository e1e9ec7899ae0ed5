"""
Room management API endpoints
房间管理API端点
"""

import logging
from typing import List
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from imposter.core.config import settings
from imposter.core.database import get_db
from imposter.core.exceptions import NotFoundError
from imposter.core.store import RowStore
from imposter.services.chat import RoomChat
from imposter.services.directory import SessionDirectory
from imposter.services.roster import RosterManager
from imposter.services.sync import load_room_snapshot
from imposter.schemas.game import ChatCreate
from imposter.schemas.room import (
    RoomCreate, RoomCreated, RoomJoinRequest, RoomJoined, RoomState, RoomSnapshot, ChatMessageState
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def get_store(db: AsyncSession = Depends(get_db)) -> RowStore:
    """获取行存储依赖"""
    return RowStore(db)


async def get_player_id(x_player_id: str = Header(..., alias="X-Player-Id")) -> str:
    """自签发身份令牌；不做任何校验"""
    return x_player_id


@router.post("", response_model=RoomCreated, status_code=status.HTTP_201_CREATED)
async def create_room(room_data: RoomCreate, store: RowStore = Depends(get_store)):
    """
    创建新房间

    - **creator_name**: 房主昵称
    - **config**: 玩家数、卧底数、词汇类别、提示开关、计时
    """
    return await SessionDirectory(store).create_room(room_data.creator_name, room_data.config)


@router.get("/{code}", response_model=RoomState)
async def get_room(code: str, store: RowStore = Depends(get_store)):
    """按房间码查找房间"""
    room = await SessionDirectory(store).find_room(code)
    return RoomState.model_validate(room)


@router.post("/{code}/join", response_model=RoomJoined, status_code=status.HTTP_201_CREATED)
async def join_room(code: str, join_data: RoomJoinRequest, store: RowStore = Depends(get_store)):
    """加入房间（仅限等待阶段）"""
    return await RosterManager(store).join(code, join_data.display_name)


@router.get("/{code}/state", response_model=RoomSnapshot)
async def get_room_state(code: str, store: RowStore = Depends(get_store)):
    """房间完整快照，客户端轮询使用"""
    room = await SessionDirectory(store).find_room(code)
    snapshot = await load_room_snapshot(store, room.id)
    if snapshot is None:
        raise NotFoundError("room not found", detail={"code": code})
    return snapshot


@router.get("/{code}/messages", response_model=List[ChatMessageState])
async def get_messages(
    code: str,
    limit: int = Query(settings.CHAT_HISTORY_LIMIT, ge=1, le=500),
    store: RowStore = Depends(get_store),
):
    """房间聊天记录（最新的若干条，按时间正序）"""
    room = await SessionDirectory(store).find_room(code)
    messages = await RoomChat(store).messages(room.id, limit)
    return [ChatMessageState.model_validate(m) for m in messages]


@router.post("/{code}/messages", response_model=ChatMessageState, status_code=status.HTTP_201_CREATED)
async def send_message(
    code: str,
    chat_data: ChatCreate,
    player_id: str = Depends(get_player_id),
    store: RowStore = Depends(get_store),
):
    """发送聊天消息"""
    room = await SessionDirectory(store).find_room(code)
    message = await RoomChat(store).send_message(room.id, player_id, chat_data.message)
    return ChatMessageState.model_validate(message)
