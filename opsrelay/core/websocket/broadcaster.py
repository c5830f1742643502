"""
Fan-out of envelopes to room members or to every connected user.
"""
import logging
from typing import Any, Callable, Dict, Optional

from opsrelay.core.observability.metrics import SignalingMetrics
from opsrelay.core.websocket.connection import Connection
from opsrelay.core.websocket.errors import TransportError
from opsrelay.core.websocket.manager import ConnectionManager
from opsrelay.core.websocket.rooms import RoomRegistry

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Delivers envelopes to registered connections.

    A failed send to one recipient is logged and skipped; delivery to the
    others continues. Recipients are looked up again right before each send,
    since earlier sends may have suspended and let other handlers run.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        rooms: RoomRegistry,
        metrics: Optional[SignalingMetrics] = None,
    ) -> None:
        self._connections = connections
        self._rooms = rooms
        self._metrics = metrics or SignalingMetrics()

    async def broadcast_to_room(
        self,
        room_id: str,
        envelope: Dict[str, Any],
        exclude_user_id: Optional[str] = None,
        allowed: Optional[Callable[[Connection], bool]] = None,
    ) -> int:
        """
        Send envelope to every member of room_id except exclude_user_id.

        Args:
            room_id: Room whose members receive the envelope
            envelope: JSON-serializable frame
            exclude_user_id: Member to skip (usually the sender)
            allowed: Optional per-recipient filter (access re-check)

        Returns:
            Number of successful deliveries
        """
        self._metrics.incr("broadcasts")
        delivered = 0
        for user_id in self._rooms.members(room_id):
            if exclude_user_id is not None and user_id == exclude_user_id:
                continue
            if not self._rooms.is_member(room_id, user_id):
                continue
            if await self._deliver(user_id, envelope, allowed):
                delivered += 1
        return delivered

    async def send_to_all(self, envelope: Dict[str, Any], exclude_user_id: Optional[str] = None) -> int:
        """Send envelope to every connected user except exclude_user_id."""
        self._metrics.incr("broadcasts")
        delivered = 0
        for user_id in self._connections.connected_user_ids():
            if exclude_user_id is not None and user_id == exclude_user_id:
                continue
            if await self._deliver(user_id, envelope, None):
                delivered += 1
        return delivered

    async def _deliver(
        self,
        user_id: str,
        envelope: Dict[str, Any],
        allowed: Optional[Callable[[Connection], bool]],
    ) -> bool:
        conn = self._connections.get(user_id)
        if conn is None or not conn.is_open:
            return False
        if allowed is not None and not allowed(conn):
            return False
        try:
            await conn.send(envelope)
        except TransportError as e:
            self._metrics.incr("delivery_failures")
            logger.warning("Error broadcasting %s to user %s: %s", envelope.get("type"), user_id, e)
            return False
        self._metrics.incr("deliveries")
        return True
