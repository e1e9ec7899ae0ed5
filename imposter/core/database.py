"""
Database configuration and connection management
数据库配置和连接管理
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy import text, inspect
from imposter.core.config import settings
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""

    def to_dict(self) -> Dict[str, Any]:
        """Column values keyed by attribute name"""
        return {
            attr.key: getattr(self, attr.key)
            for attr in inspect(self).mapper.column_attrs
        }


class DatabaseManager:
    """Database manager holding the engine and session factory"""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def initialize(self, database_url: Optional[str] = None):
        """Initialize the async engine and session factory"""
        try:
            url = database_url or settings.DATABASE_URL
            engine_kwargs = {"echo": settings.DEBUG, "pool_pre_ping": settings.DB_POOL_PRE_PING}
            if url.startswith("sqlite"):
                engine_kwargs["connect_args"] = {"check_same_thread": False}

            self.engine = create_async_engine(url, **engine_kwargs)
            self.bind(self.engine)

            await self._test_connection()
            logger.info("Database manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database manager: {e}")
            raise

    def bind(self, engine: AsyncEngine):
        """Attach an existing engine (used by tests)"""
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=True,
        )

    async def _test_connection(self) -> bool:
        """Test database connection health"""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (DisconnectionError, OperationalError) as e:
            logger.warning(f"Database connection test failed: {e}")
            return False

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()


async def create_tables(engine: AsyncEngine):
    """Create all tables registered on Base"""
    # Import all models to ensure they are registered
    from imposter.models import room, player, round, chat  # noqa

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db():
    """Initialize database connection and create tables if needed"""
    try:
        await db_manager.initialize()
        await create_tables(db_manager.engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def get_db():
    """Dependency to get database session"""
    if not db_manager.session_factory:
        await db_manager.initialize()

    session = db_manager.session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_db():
    """Close database connections"""
    await db_manager.close()
