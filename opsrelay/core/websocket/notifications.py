"""
Server-originated notifications: message created/updated/deleted and presence.

These are the entry points the back-office REST layer calls after it has
persisted a change. Room-scoped notifications re-check room access against the
current room record before delivering to each subscriber.
"""
import logging
from typing import Any, Callable, Dict, Iterable, Union

from opsrelay.core.memory.chat_store import ChatStore, RoomRecord
from opsrelay.core.security.access import authorize_room_access
from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.broadcaster import Broadcaster
from opsrelay.core.websocket.connection import Connection

logger = logging.getLogger(__name__)

MessageRef = Union[str, Dict[str, Any]]


class Notifier:
    """Public notification surface on top of the Broadcaster."""

    def __init__(
        self,
        store: ChatStore,
        broadcaster: Broadcaster,
        admin_roles: Iterable[str] = (),
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._admin_roles = tuple(admin_roles)

    async def broadcast_new_message(self, room_id: str, message: MessageRef) -> int:
        """Notify room subscribers of a new message (id or enriched projection)."""
        return await self._broadcast_message(protocol.NEW_MESSAGE, room_id, message)

    async def broadcast_message_update(self, room_id: str, message: MessageRef) -> int:
        """Notify room subscribers that a message was edited."""
        return await self._broadcast_message(protocol.MESSAGE_UPDATED, room_id, message)

    async def broadcast_message_delete(self, room_id: str, message_id: str) -> int:
        """Notify room subscribers of a deletion. Only the id is sent, never the content."""
        envelope = protocol.message_event(protocol.MESSAGE_DELETED, room_id, {"id": message_id})
        return await self._broadcast_scoped(room_id, envelope)

    async def broadcast_user_status(self, room_id: str, user_id: str, is_online: bool) -> int:
        """Room-scoped user_online / user_offline."""
        envelope = protocol.presence(user_id, is_online, room_id=room_id)
        return await self._broadcast_scoped(room_id, envelope)

    async def broadcast_presence(self, user_id: str, is_online: bool) -> int:
        """Global user_online / user_offline to every other connected user."""
        return await self._broadcaster.send_to_all(
            protocol.presence(user_id, is_online),
            exclude_user_id=user_id,
        )

    async def _broadcast_message(self, kind: str, room_id: str, message: MessageRef) -> int:
        if isinstance(message, str):
            enriched = await self._store.fetch_enriched_message(message)
            if enriched is None:
                logger.warning("Skipping %s for room %s: message %s not found", kind, room_id, message)
                return 0
            message = enriched
        return await self._broadcast_scoped(room_id, protocol.message_event(kind, room_id, message))

    async def _broadcast_scoped(self, room_id: str, envelope: Dict[str, Any]) -> int:
        room = await self._store.find_room(room_id)
        if room is None:
            logger.warning("Skipping %s: room %s not found", envelope.get("type"), room_id)
            return 0
        return await self._broadcaster.broadcast_to_room(
            room_id,
            envelope,
            allowed=self._access_filter(room),
        )

    def _access_filter(self, room: RoomRecord) -> Callable[[Connection], bool]:
        def allowed(conn: Connection) -> bool:
            return authorize_room_access(conn.user_id, room, conn.role, self._admin_roles)
        return allowed
