"""
Change feed and row store tests
变更通知与行存储测试
"""

import pytest

from imposter.core.exceptions import ConflictError
from imposter.models.room import Room
from imposter.realtime.change_feed import ChangeEvent, ChangeFeed
from imposter.schemas.game import GamePhase


class FailingRedis:
    def __init__(self):
        self.calls = 0

    async def publish(self, channel, message):
        self.calls += 1
        raise ConnectionError("redis is down")


class TestChangeFeed:

    @pytest.mark.asyncio
    async def test_filtered_delivery(self):
        feed = ChangeFeed()
        mine = feed.subscribe("players", "room_id", "r1")
        other = feed.subscribe("players", "room_id", "r2")

        delivered = await feed.publish(ChangeEvent(table="players", op="insert", row={"room_id": "r1"}))

        assert delivered == 1
        assert mine.queue.qsize() == 1
        assert other.queue.empty()
        assert (await mine.get()).origin == feed.origin

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_receiving(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("rooms", "id", "r1")
        subscription.close()

        assert await feed.publish(ChangeEvent(table="rooms", op="update", row={"id": "r1"})) == 0
        assert feed.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_redis_failure_keeps_local_delivery(self):
        feed = ChangeFeed()
        feed._redis, feed._channel = FailingRedis(), "test"
        subscription = feed.subscribe("votes", "round_id", "x")

        assert await feed.publish(ChangeEvent(table="votes", op="insert", row={"round_id": "x"})) == 1
        assert feed._redis.calls == 1
        assert subscription.queue.qsize() == 1

    def test_event_json_round_trip_keeps_origin(self):
        event = ChangeEvent(table="rooms", op="update", row={"id": "r1", "phase": GamePhase.VOTING},
                            origin="worker-a")
        restored = ChangeEvent.from_json(event.to_json())
        assert restored.origin == "worker-a"
        assert restored.matches("id", "r1")


class TestRowStore:
    """行存储：版本递增与条件更新"""

    @pytest.mark.asyncio
    async def test_update_bumps_version_and_publishes(self, store, feed):
        room = await store.insert(Room(code="AAAAAA", creator_id="p", categories=["Objects"]))
        subscription = feed.subscribe("rooms", "id", room.id)

        assert await store.update(Room, room.id, {"current_round": 1})
        refreshed = await store.get(Room, room.id)
        assert refreshed.version == 2
        event = subscription.queue.get_nowait()
        assert event.op == "update"
        assert event.row["version"] == 2

    @pytest.mark.asyncio
    async def test_conditional_update_not_applied(self, store, feed):
        room = await store.insert(Room(code="BBBBBB", creator_id="p", categories=["Objects"]))
        subscription = feed.subscribe("rooms", "id", room.id)

        applied = await store.update(Room, room.id, {"phase": GamePhase.RESULTS},
                                     expected={"phase": GamePhase.VOTING})

        assert applied is False
        assert (await store.get(Room, room.id)).version == 1
        assert subscription.queue.empty()

    @pytest.mark.asyncio
    async def test_duplicate_unique_key_conflicts(self, store):
        await store.insert(Room(code="CCCCCC", creator_id="p", categories=["Objects"]))
        with pytest.raises(ConflictError):
            await store.insert(Room(code="CCCCCC", creator_id="q", categories=["Objects"]))
        assert await store.count(Room) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_filter(self, store):
        with pytest.raises(ValueError):
            await store.delete(Room)

    @pytest.mark.asyncio
    async def test_delete_by_many_values_notifies_each(self, store, feed):
        await store.insert(Room(code="DDDDDD", creator_id="p", categories=["Objects"]))
        await store.insert(Room(code="EEEEEE", creator_id="p", categories=["Objects"]))
        first = feed.subscribe("rooms", "code", "DDDDDD")
        second = feed.subscribe("rooms", "code", "EEEEEE")

        assert await store.delete(Room, code=["DDDDDD", "EEEEEE"]) == 2

        assert first.queue.get_nowait().row == {"code": "DDDDDD"}
        assert second.queue.get_nowait().row == {"code": "EEEEEE"}
        assert first.queue.empty() and second.queue.empty()
