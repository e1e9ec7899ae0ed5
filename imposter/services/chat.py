"""
Room chat service
房间聊天服务 - 持久化的房间内讨论消息
"""

import re
import logging
from typing import List, Optional

from imposter.core.config import settings
from imposter.core.exceptions import ValidationError
from imposter.core.store import RowStore
from imposter.models.chat import ChatMessage
from imposter.models.player import Player

logger = logging.getLogger(__name__)


class RoomChat:
    """
    房间聊天
    Messages are open to every seat in every phase, eliminated players
    included. Readers get the newest messages, oldest first.
    """

    def __init__(self, store: RowStore):
        self.store = store

    @staticmethod
    def clean_text(text: str) -> str:
        text = re.sub(r"\s+", " ", text or "").strip()
        if not text:
            raise ValidationError("message must not be empty")
        if len(text) > settings.MAX_CHAT_LENGTH:
            raise ValidationError(f"message must be at most {settings.MAX_CHAT_LENGTH} characters")
        return text

    async def send_message(self, room_id: str, player_id: str, text: str) -> ChatMessage:
        """发送消息"""
        text = self.clean_text(text)
        player = await self.store.get(Player, player_id)
        if player is None or player.room_id != room_id:
            raise ValidationError("player is not seated in this room")

        message = await self.store.insert(ChatMessage(
            room_id=room_id,
            player_id=player_id,
            username=player.display_name,
            message=text,
        ))
        logger.debug(f"Chat message from {player.display_name} in room {room_id}")
        return message

    async def messages(self, room_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        limit = limit if limit is not None else settings.CHAT_HISTORY_LIMIT
        latest = await self.store.select(
            ChatMessage, room_id=room_id,
            order_by=(ChatMessage.created_at.desc(),), limit=limit,
        )
        return list(reversed(latest))
