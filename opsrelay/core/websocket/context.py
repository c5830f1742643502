"""
Signaling context: the one object that owns the connection registry, room
membership, typing timers, heartbeat monitor and notification surface for a
process. Handlers receive it explicitly instead of reaching for module globals.
"""
import logging
from typing import Any, Dict, Optional

from opsrelay.core.config import Settings, settings as default_settings
from opsrelay.core.memory.chat_store import ChatStore
from opsrelay.core.observability.metrics import SignalingMetrics
from opsrelay.core.security.access import authorize_room_access, is_valid_room_id
from opsrelay.core.security.tokens import Principal, TokenVerifier
from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.broadcaster import Broadcaster
from opsrelay.core.websocket.connection import Connection
from opsrelay.core.websocket.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    SignalingError,
    ValidationError,
)
from opsrelay.core.websocket.heartbeat import HeartbeatMonitor
from opsrelay.core.websocket.manager import ConnectionManager
from opsrelay.core.websocket.notifications import Notifier
from opsrelay.core.websocket.rooms import RoomRegistry
from opsrelay.core.websocket.typing_indicators import TypingTracker

logger = logging.getLogger(__name__)


class SignalingContext:
    """Process-wide signaling state, passed into every handler."""

    def __init__(
        self,
        store: ChatStore,
        verifier: Optional[TokenVerifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.verifier = verifier or TokenVerifier()
        self.metrics = SignalingMetrics()
        self.connections = ConnectionManager()
        self.rooms = RoomRegistry()
        self.broadcaster = Broadcaster(self.connections, self.rooms, self.metrics)
        self.typing = TypingTracker(
            self.rooms,
            self.broadcaster,
            timeout=self.settings.typing_timeout_seconds,
        )
        self.heartbeat = HeartbeatMonitor(
            self.connections,
            on_timeout=self.terminate,
            interval=self.settings.heartbeat_interval_seconds,
        )
        self.notifier = Notifier(store, self.broadcaster, admin_roles=self.settings.room_admin_roles)

    # Lifecycle

    async def start(self) -> None:
        self.heartbeat.start()

    async def stop(self) -> None:
        await self.heartbeat.stop()
        self.typing.shutdown()
        self.metrics.log_summary()

    # Connection state machine

    async def authenticate(self, token: str) -> Principal:
        """Resolve the handshake token. Raises AuthenticationError."""
        try:
            return await self.verifier.verify(token)
        except AuthenticationError:
            self.metrics.incr("auth_failures")
            raise

    async def connect(self, websocket: Any, principal: Principal) -> Connection:
        """
        Register an authenticated socket for principal.user_id.

        A previous connection for the same user is purged and force-closed.
        Sends the `connected` acknowledgement and, for a fresh login, global
        presence.
        """
        conn = Connection(user_id=principal.user_id, websocket=websocket, role=principal.role)
        old = self.connections.register(conn)
        self.metrics.incr("connections_opened")
        try:
            if old is not None:
                self.metrics.incr("connections_replaced")
                # Same user id: its memberships and timers belonged to the old socket
                old.mark_closed()
                self._purge_user_state(old.user_id)
                await old.close(protocol.CLOSE_REPLACED, "Replaced by new connection")
            await conn.send(protocol.connected(conn.user_id))
            logger.info("WebSocket connected: user %s", conn.user_id)
            if old is None and self.settings.presence_enabled:
                await self.notifier.broadcast_presence(conn.user_id, True)
        except Exception:
            await self.disconnect(conn)
            raise
        return conn

    async def disconnect(self, conn: Connection) -> bool:
        """
        Move conn to CLOSED and purge everything its user owned.

        The purge runs with no await in between, so no other handler can see
        a closed user still subscribed. Returns False if conn was already
        closed or superseded.
        """
        if not conn.mark_closed():
            return False
        was_current = self.connections.unregister(conn)
        if not was_current:
            return False
        rooms = self._purge_user_state(conn.user_id)
        self.metrics.incr("connections_closed")
        logger.info("WebSocket disconnected: user %s (rooms purged: %d)", conn.user_id, len(rooms))
        if self.settings.presence_enabled and not self.connections.is_connected(conn.user_id):
            await self.notifier.broadcast_presence(conn.user_id, False)
        return True

    async def terminate(self, conn: Connection) -> None:
        """Heartbeat timeout: run the disconnect cascade, then drop the transport."""
        self.metrics.incr("heartbeat_terminations")
        await self.disconnect(conn)
        await conn.close(protocol.CLOSE_HEARTBEAT_TIMEOUT, "heartbeat_timeout")

    def _purge_user_state(self, user_id: str) -> list:
        rooms = self.rooms.purge_user(user_id)
        self.typing.purge_user(user_id)
        return rooms

    # Room membership

    async def join_room(self, conn: Connection, room_id: Any) -> bool:
        """
        Subscribe conn's user to room_id.

        Raises:
            ValidationError: room_id is not a document id
            NotFoundError: room does not exist
            AuthorizationError: user may not access the room
            SignalingError: store lookup failed

        Returns False (silently) if the connection closed during the lookup.
        """
        if not is_valid_room_id(room_id):
            logger.warning("Invalid room ID format from user %s: %s", conn.user_id, room_id)
            raise ValidationError("Invalid room ID. Please wait for the room to be created.")
        try:
            room = await self.store.find_room(room_id)
        except Exception as e:
            logger.exception("Error joining room %s: %s", room_id, e)
            raise SignalingError("Failed to join room") from e
        if room is None:
            raise NotFoundError("Room not found")
        if not authorize_room_access(conn.user_id, room, conn.role, self.settings.room_admin_roles):
            raise AuthorizationError("Access denied to this room")
        # The lookup suspended; the socket may have closed or been replaced meanwhile
        if not self.connections.is_current(conn):
            logger.debug("Dropping join_room for closed connection of user %s", conn.user_id)
            return False
        self.rooms.add(room_id, conn.user_id)
        await conn.send(protocol.room_joined(room_id))
        return True

    def leave_room(self, conn: Connection, room_id: Any) -> bool:
        """Unsubscribe and drop any pending typing timer. Idempotent."""
        if not isinstance(room_id, str):
            return False
        self.typing.clear(room_id, conn.user_id)
        return self.rooms.remove(room_id, conn.user_id)

    async def typing_signal(self, conn: Connection, room_id: Any, is_typing: bool) -> bool:
        if not isinstance(room_id, str):
            return False
        return await self.typing.signal(room_id, conn.user_id, is_typing is True)

    # Introspection

    def stats(self) -> Dict[str, Any]:
        return {
            "connected_users": len(self.connections),
            "active_rooms": self.rooms.active_rooms,
            "active_typists": self.typing.active_count,
            "heartbeat_running": self.heartbeat.running,
            "counters": self.metrics.snapshot(),
        }
