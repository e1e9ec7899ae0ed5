# Database models
from .room import Room, GameSettings
from .player import Player
from .round import Round, Clue, Vote
from .chat import ChatMessage

__all__ = [
    "Room", "GameSettings",
    "Player",
    "Round", "Clue", "Vote",
    "ChatMessage",
]
