"""
Player model
玩家数据模型
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, UniqueConstraint
from imposter.core.database import Base
from imposter.models.room import new_id


class Player(Base):
    """A seat in a room; role and secret are round-scoped"""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("room_id", "turn_order", name="uq_players_room_turn_order"),
    )

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    display_name = Column(String(50), nullable=False)

    # 本轮角色与词汇
    is_imposter = Column(Boolean, default=False, nullable=False)
    secret = Column(String(100), nullable=True)

    is_alive = Column(Boolean, default=True, nullable=False)
    turn_order = Column(Integer, nullable=False)
    score = Column(Integer, default=0, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Player(id={self.id}, name={self.display_name}, turn_order={self.turn_order})>"
