"""
WebSocket endpoints
WebSocket连接端点 - 推送房间的行变更通知
"""

import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from imposter.realtime.change_feed import change_feed

logger = logging.getLogger(__name__)
router = APIRouter()

ROOM_SCOPED_TABLES = (
    ("rooms", "id"),
    ("players", "room_id"),
    ("rounds", "room_id"),
    ("game_settings", "room_id"),
    ("chat_messages", "room_id"),
)


@router.websocket("/{room_id}")
async def websocket_room_endpoint(websocket: WebSocket, room_id: str):
    """
    房间变更流
    Each message is a change event and only a hint to re-read state.
    Clue and vote events are keyed by round, so rounds are followed as they
    appear and their child tables subscribed in turn.
    """
    await websocket.accept()
    logger.info(f"[WS_CONNECT] Change stream opened for room {room_id}")

    queue: asyncio.Queue = asyncio.Queue()
    subscriptions = []
    forwarders = []
    followed_rounds = set()

    def follow(subscription):
        subscriptions.append(subscription)

        async def forward():
            while True:
                queue.put_nowait(await subscription.get())

        forwarders.append(asyncio.create_task(forward()))

    for table, column in ROOM_SCOPED_TABLES:
        follow(change_feed.subscribe(table, column, room_id))

    async def watch_disconnect():
        # 客户端只接收；读到断开即结束
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return

    disconnect_task = asyncio.create_task(watch_disconnect())
    try:
        while True:
            event_task = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({event_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)
            if disconnect_task in done:
                event_task.cancel()
                break

            event = event_task.result()
            if event.table == "rounds":
                round_id = event.row.get("id")
                if round_id and round_id not in followed_rounds:
                    followed_rounds.add(round_id)
                    follow(change_feed.subscribe("clues", "round_id", round_id))
                    follow(change_feed.subscribe("votes", "round_id", round_id))
            await websocket.send_text(event.to_json())

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for room {room_id}")
    except Exception as e:
        logger.error(f"WebSocket stream error for room {room_id}: {e}")
    finally:
        disconnect_task.cancel()
        for task in forwarders:
            task.cancel()
        for subscription in subscriptions:
            subscription.close()
        logger.info(f"[WS_DISCONNECT] Change stream closed for room {room_id}")
