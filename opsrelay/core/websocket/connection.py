"""
A single authenticated WebSocket connection and its lifecycle state.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from opsrelay.core.websocket.errors import TransportError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    Owning user id, transport handle and liveness flag.

    Instances compare by identity so a superseded connection for the same
    user is never mistaken for the current one.
    """
    user_id: str
    websocket: Any
    role: Optional[str] = None
    state: ConnectionState = ConnectionState.CONNECTING
    is_alive: bool = True
    connected_at: float = field(default_factory=time.time)

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def mark_authenticated(self) -> None:
        if self.state is ConnectionState.CONNECTING:
            self.state = ConnectionState.AUTHENTICATED

    def mark_closed(self) -> bool:
        """Transition to CLOSED. Returns False if it was already closed."""
        if self.state is ConnectionState.CLOSED:
            return False
        self.state = ConnectionState.CLOSED
        return True

    async def send(self, envelope: Dict[str, Any]) -> None:
        """Send a JSON envelope. Raises TransportError if the socket is not open or the send fails."""
        if not self.is_open:
            raise TransportError(f"connection for user {self.user_id} is {self.state.value}")
        try:
            await self.websocket.send_json(envelope)
        except Exception as e:
            raise TransportError(f"send to user {self.user_id} failed: {e}") from e

    async def close(self, code: int, reason: str) -> None:
        """Close the transport. Errors from an already-closed socket are logged and ignored."""
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("Close WebSocket for user %s (code=%s): %s", self.user_id, code, e)
