"""
Row-level change notifications
行级变更通知 - 按外键过滤的订阅，支持通过 Redis 跨进程广播
"""

import json
import uuid
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class ChangeEvent:
    """A single row change on one logical table"""

    table: str
    op: str  # insert | update | delete
    row: Dict[str, Any]
    origin: str = ""

    def matches(self, column: str, value: Any) -> bool:
        return self.row.get(column) == value

    def to_json(self) -> str:
        return json.dumps(
            {"table": self.table, "op": self.op, "row": self.row, "origin": self.origin},
            default=str,
        )

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        data = json.loads(raw)
        return cls(table=data["table"], op=data["op"], row=data.get("row") or {}, origin=data.get("origin", ""))


@dataclass(eq=False)
class Subscription:
    """Queue of change events for one (table, column, value) filter"""

    feed: "ChangeFeed"
    table: str
    column: str
    value: Any
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False

    def offer(self, event: ChangeEvent) -> bool:
        if self.closed or event.table != self.table:
            return False
        if not event.matches(self.column, self.value):
            return False
        self.queue.put_nowait(event)
        return True

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def close(self):
        self.feed.unsubscribe(self)


class ChangeFeed:
    """
    变更通知中心
    Delivers at-least-once, unordered-across-tables notifications. Consumers
    must treat every event only as a hint to re-read the store.
    """

    def __init__(self):
        self.origin = str(uuid.uuid4())
        self._subscriptions: Dict[str, Set[Subscription]] = {}
        self._redis = None
        self._channel: Optional[str] = None
        self._relay_task: Optional[asyncio.Task] = None

    def subscribe(self, table: str, column: str, value: Any) -> Subscription:
        subscription = Subscription(feed=self, table=table, column=column, value=value)
        self._subscriptions.setdefault(table, set()).add(subscription)
        logger.debug(f"Subscribed to {table} where {column}={value}")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        subscription.closed = True
        subscribers = self._subscriptions.get(subscription.table)
        if subscribers:
            subscribers.discard(subscription)

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table:
            return len(self._subscriptions.get(table, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def deliver(self, event: ChangeEvent) -> int:
        """Hand an event to every matching local subscriber"""
        delivered = 0
        for subscription in list(self._subscriptions.get(event.table, ())):
            if subscription.offer(event):
                delivered += 1
        return delivered

    async def publish(self, event: ChangeEvent) -> int:
        if not event.origin:
            event.origin = self.origin
        delivered = self.deliver(event)

        if self._redis is not None:
            try:
                await self._redis.publish(self._channel, event.to_json())
            except Exception as e:
                # 本地订阅者已收到；其他进程依靠轮询兜底
                logger.warning(f"Failed to fan out {event.table} change over Redis: {e}")

        return delivered

    async def attach_redis(self, client, channel: str):
        """Relay events between worker processes through Redis pub/sub"""
        self._redis = client
        self._channel = channel
        pubsub = client.pubsub()
        await pubsub.subscribe(channel)
        self._relay_task = asyncio.create_task(self._relay_loop(pubsub))
        logger.info(f"Change feed relaying over Redis channel {channel}")

    async def _relay_loop(self, pubsub):
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = ChangeEvent.from_json(message["data"])
                except (ValueError, KeyError) as e:
                    logger.warning(f"Dropping malformed change event: {e}")
                    continue
                if event.origin == self.origin:
                    continue
                self.deliver(event)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.aclose()

    async def close(self):
        if self._relay_task:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None
        self._redis = None
        for subscribers in self._subscriptions.values():
            for subscription in subscribers:
                subscription.closed = True
        self._subscriptions.clear()


# Global change feed instance
change_feed = ChangeFeed()
