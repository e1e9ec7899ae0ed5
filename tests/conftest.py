"""
Pytest configuration and fixtures
测试配置和固件
"""

import random
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from imposter.core.database import Base, create_tables
from imposter.core.store import RowStore
from imposter.realtime.change_feed import ChangeFeed
from imposter.schemas.room import RoomConfig
from imposter.services.phase import PhaseController


# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )
    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def store(db_session, feed):
    return RowStore(db_session, feed)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def controller(store, rng):
    return PhaseController(store, rng=rng)


@pytest.fixture
def make_room(controller):
    """
    Create a room and seat players.
    Returns (room_id, code, [player_ids in turn order]); the first id is the host.
    """
    async def _make_room(players: int = 4, **config):
        config.setdefault("num_players", max(players, 2))
        created = await controller.directory.create_room("Host", RoomConfig(**config))
        player_ids = [created.player_id]
        for i in range(1, players):
            joined = await controller.roster.join(created.code, f"Player {i}")
            player_ids.append(joined.player_id)
        return created.room_id, created.code, player_ids

    return _make_room


@pytest.fixture
def force_roles(store):
    """Overwrite the random role draw so scenarios are deterministic"""
    from imposter.models.player import Player

    async def _force_roles(player_ids, imposter_ids):
        for player_id in player_ids:
            await store.update(Player, player_id, {"is_imposter": player_id in imposter_ids})

    return _force_roles


@pytest.fixture
def play_to_voting(controller, make_room, force_roles):
    """Seat players, start, fix roles, and submit every clue"""
    async def _play_to_voting(players: int = 4, imposters=(), **config):
        room_id, code, ids = await make_room(players, **config)
        await controller.start_game(room_id, ids[0])
        await force_roles(ids, {ids[i] for i in imposters})
        await controller.begin_clues(room_id, ids[0])
        for i, player_id in enumerate(ids):
            await controller.submit_clue(room_id, player_id, f"clue {i}")
        return room_id, code, ids

    return _play_to_voting
