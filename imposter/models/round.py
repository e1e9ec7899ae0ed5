"""
Round, clue and vote models
轮次、线索与投票数据模型
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, UniqueConstraint
from imposter.core.database import Base
from imposter.models.room import new_id
from imposter.schemas.game import RoundOutcome


class Round(Base):
    """One cycle of clue-giving and voting"""

    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_rounds_room_number"),
    )

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    secret_word = Column(String(100), nullable=False)
    category = Column(String(50), nullable=True)
    hint = Column(String(100), nullable=True)

    # Resolution
    outcome = Column(Enum(RoundOutcome, values_callable=lambda obj: [e.value for e in obj]),
                     nullable=True)
    eliminated_id = Column(String(36), nullable=True)

    # 卧底最后猜词机会
    guess_player_id = Column(String(36), nullable=True)
    guess_text = Column(String(100), nullable=True)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Round(id={self.id}, room_id={self.room_id}, number={self.round_number})>"


class Clue(Base):
    """Clue model, one per player per round"""

    __tablename__ = "clues"
    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_clues_round_player"),
        UniqueConstraint("round_id", "turn_order", name="uq_clues_round_turn_order"),
    )

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)

    text = Column(String(100), nullable=False)
    turn_order = Column(Integer, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Clue(id={self.id}, player_id={self.player_id}, order={self.turn_order})>"


class Vote(Base):
    """Vote model, one per voter per round"""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("round_id", "voter_id", name="uq_votes_round_voter"),
    )

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
    voter_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    target_id = Column(String(36), ForeignKey("players.id"), nullable=False)

    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Vote(id={self.id}, voter_id={self.voter_id}, target_id={self.target_id})>"
