"""
Session restore service
会话恢复服务 - 本地保存玩家身份，重新打开时恢复到房间
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Union

from imposter.core.config import settings
from imposter.core.store import RowStore
from imposter.models.player import Player
from imposter.services.directory import SessionDirectory, normalize_code
from imposter.schemas.room import ChatMessageState
from imposter.services.chat import RoomChat
from imposter.services.sync import ClientSession, Reconciler, load_room_snapshot

logger = logging.getLogger(__name__)


@dataclass
class StoredIdentity:
    player_id: str
    room_code: str


class IdentityStore:
    """Durable (player_id, room_code) pair kept on the client device"""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or settings.SESSION_FILE)

    def save(self, player_id: str, room_code: str):
        identity = StoredIdentity(player_id=player_id, room_code=normalize_code(room_code))
        self.path.write_text(json.dumps(asdict(identity)), encoding="utf-8")
        logger.debug(f"Saved identity for room {identity.room_code}")

    def load(self) -> Optional[StoredIdentity]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return StoredIdentity(player_id=data["player_id"], room_code=data["room_code"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


async def restore_session(identity_store: IdentityStore, store: RowStore) -> Optional[ClientSession]:
    """
    恢复会话
    Returns a populated ClientSession when the stored room and player still
    exist together; otherwise clears the stored pair and returns None.
    Never raises.
    """
    identity = identity_store.load()
    if identity is None:
        return None

    try:
        room = await SessionDirectory(store).find_room(identity.room_code)
        player = await store.get(Player, identity.player_id)
        if player is None or player.room_id != room.id:
            raise LookupError(f"player {identity.player_id} is not seated in room {room.code}")

        snapshot = await load_room_snapshot(store, room.id)
        if snapshot is None:
            raise LookupError(f"room {room.code} disappeared while restoring")

        session = ClientSession(player_id=player.id)
        reconciler = Reconciler(session)
        reconciler.apply_snapshot(snapshot)
        history = await RoomChat(store).messages(room.id)
        reconciler.apply_messages(reconciler.next_seq(),
                                  [ChatMessageState.model_validate(m) for m in history])
        logger.info(f"Restored session for {player.display_name} in room {room.code} "
                    f"(phase {room.phase.value})")
        return session
    except Exception as e:
        logger.info(f"Discarding stored session for room {identity.room_code}: {e}")
        identity_store.clear()
        return None


def leave(identity_store: IdentityStore):
    """离开房间：只清除本地身份，服务端数据不做任何修改"""
    identity_store.clear()
    logger.info("Left room, local identity cleared")
