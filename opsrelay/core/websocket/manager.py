"""
Connection manager: map user_id to its single live Connection, send_to_user.
"""
import logging
from typing import Any, Dict, List, Optional

from opsrelay.core.websocket.connection import Connection
from opsrelay.core.websocket.errors import TransportError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Maps user_id to a single Connection.

    All mutation happens on the event loop between awaits, so the registry is
    not locked. Callers holding a Connection across an await must re-check
    is_current() before acting on it.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def register(self, connection: Connection) -> Optional[Connection]:
        """Register connection for its user. Returns the superseded connection, if any."""
        old = self._connections.get(connection.user_id)
        self._connections[connection.user_id] = connection
        connection.mark_authenticated()
        if old is not None and old is not connection:
            logger.info("Connection for user_id=%s superseded by new handshake", connection.user_id)
            return old
        logger.info("WebSocket registered for user_id=%s", connection.user_id)
        return None

    def unregister(self, connection: Connection) -> bool:
        """Remove connection if it is still the registered one for its user."""
        if self._connections.get(connection.user_id) is connection:
            del self._connections[connection.user_id]
            logger.info("WebSocket unregistered for user_id=%s", connection.user_id)
            return True
        return False

    def get(self, user_id: str) -> Optional[Connection]:
        return self._connections.get(user_id)

    def is_current(self, connection: Connection) -> bool:
        """True if connection is open and still the registered one for its user."""
        return connection.is_open and self._connections.get(connection.user_id) is connection

    def is_connected(self, user_id: str) -> bool:
        """Return True if user has an active WebSocket."""
        return user_id in self._connections

    def connected_user_ids(self) -> List[str]:
        """Return list of user_ids that currently have an active WebSocket."""
        return list(self._connections.keys())

    def connections(self) -> List[Connection]:
        """Snapshot of registered connections, safe to iterate while the registry changes."""
        return list(self._connections.values())

    async def send_to_user(self, user_id: str, obj: Dict[str, Any]) -> bool:
        """Send JSON-serializable object to user's WebSocket. Returns True if sent."""
        conn = self._connections.get(user_id)
        if conn is None:
            return False
        try:
            await conn.send(obj)
            return True
        except TransportError as e:
            logger.warning("Send to user %s failed: %s", user_id, e)
            return False

    def __len__(self) -> int:
        return len(self._connections)
