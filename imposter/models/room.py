"""
Room model
房间数据模型
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON, Boolean, ForeignKey
from imposter.core.database import Base

# 导入统一的enum定义
from imposter.schemas.game import GamePhase


def new_id() -> str:
    return str(uuid.uuid4())


class Room(Base):
    """Room model for game sessions"""

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    code = Column(String(6), unique=True, index=True, nullable=False)
    # 房主身份：等于创建者 Player.id（自签发令牌，不做鉴权）
    creator_id = Column(String(36), nullable=False)

    # Room configuration
    num_players = Column(Integer, default=4, nullable=False)
    num_imposters = Column(Integer, default=1, nullable=False)
    categories = Column(JSON, default=list, nullable=False)
    hint_enabled = Column(Boolean, default=True, nullable=False)

    # Game state
    phase = Column(Enum(GamePhase, values_callable=lambda obj: [e.value for e in obj]),
                   default=GamePhase.WAITING, nullable=False)
    phase_generation = Column(Integer, default=0, nullable=False)
    current_round = Column(Integer, default=0, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Room(id={self.id}, code={self.code}, phase={self.phase})>"

    def is_host(self, player_id: str) -> bool:
        return player_id is not None and player_id == self.creator_id


class GameSettings(Base):
    """Advisory per-room timer and round settings"""

    __tablename__ = "game_settings"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), unique=True, nullable=False)

    clue_seconds = Column(Integer, default=30, nullable=False)
    vote_seconds = Column(Integer, default=20, nullable=False)
    max_rounds = Column(Integer, default=5, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<GameSettings(room_id={self.room_id}, clue={self.clue_seconds}s, vote={self.vote_seconds}s)>"
