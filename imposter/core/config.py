"""
Application configuration settings
应用配置设置
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings for the imposter game core"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database configuration - any async SQLAlchemy URL works
    DATABASE_URL: str = "sqlite+aiosqlite:///./imposter.db"
    DB_POOL_PRE_PING: bool = True

    # Redis is only used to fan change notifications out between worker processes
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: int = 5
    CHANGE_FEED_REDIS: bool = False
    CHANGE_FEED_CHANNEL: str = "imposter:changes"

    # Room configuration
    ROOM_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    ROOM_CODE_LENGTH: int = 6
    ROOM_CODE_ATTEMPTS: int = 20
    MIN_PLAYERS_TO_START: int = 3
    MAX_NAME_LENGTH: int = 20
    MAX_CLUE_LENGTH: int = 30
    MAX_CHAT_LENGTH: int = 200
    CHAT_HISTORY_LIMIT: int = 100
    JOIN_RETRY_ATTEMPTS: int = 5

    # Game defaults (advisory, consumed by client timers)
    DEFAULT_CLUE_SECONDS: int = 30
    DEFAULT_VOTE_SECONDS: int = 20
    DEFAULT_MAX_ROUNDS: int = 5

    # 线索全部提交后自动进入投票阶段；关闭时由房主手动推进
    AUTO_ADVANCE_CLUES: bool = True

    # Scoring
    INNOCENT_WIN_POINTS: int = 2
    IMPOSTER_WIN_POINTS: int = 3

    # Client synchronization
    POLL_INTERVAL: float = 1.5  # seconds, must stay under 2s
    SESSION_FILE: str = ".imposter_session.json"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
