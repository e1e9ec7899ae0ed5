"""
Chat message model
房间聊天消息数据模型
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from imposter.core.database import Base
from imposter.models.room import new_id


class ChatMessage(Base):
    """A room-scoped chat line; the sender's name is copied at send time"""

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    username = Column(String(50), nullable=False)
    message = Column(String(200), nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, room_id={self.room_id}, player_id={self.player_id})>"
