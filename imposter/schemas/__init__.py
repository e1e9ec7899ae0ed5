# Pydantic schemas
from .game import (
    GamePhase, RoundOutcome, ClueCreate, ChatCreate, VoteCreate, GuessCreate,
    VoteResult, GuessResult, PhaseChange
)
from .room import (
    RoomConfig, RoomCreate, RoomJoinRequest, RoomCreated, RoomJoined,
    RoomState, PlayerState, RoundState, ClueState, VoteState, SettingsState,
    RoomSnapshot, ChatMessageState
)

__all__ = [
    "GamePhase", "RoundOutcome", "ClueCreate", "ChatCreate", "VoteCreate", "GuessCreate",
    "VoteResult", "GuessResult", "PhaseChange",
    "RoomConfig", "RoomCreate", "RoomJoinRequest", "RoomCreated", "RoomJoined",
    "RoomState", "PlayerState", "RoundState", "ClueState", "VoteState", "SettingsState",
    "RoomSnapshot", "ChatMessageState",
]
