"""
Wire envelopes exchanged over the chat WebSocket.

Every frame is a JSON object with a `type` key. Builders here keep the
server -> client shapes in one place.
"""
from typing import Any, Dict, Optional

# Client -> server
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
TYPING = "typing"
PING = "ping"
PONG = "pong"

# Server -> client
CONNECTED = "connected"
ROOM_JOINED = "room_joined"
ERROR = "error"
NEW_MESSAGE = "new_message"
MESSAGE_UPDATED = "message_updated"
MESSAGE_DELETED = "message_deleted"
USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"

# Close codes
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011
CLOSE_REPLACED = 4000
CLOSE_HEARTBEAT_TIMEOUT = 4001


def connected(user_id: str) -> Dict[str, Any]:
    return {"type": CONNECTED, "user_id": user_id}


def room_joined(room_id: str) -> Dict[str, Any]:
    return {"type": ROOM_JOINED, "room_id": room_id}


def error(message: str) -> Dict[str, Any]:
    return {"type": ERROR, "error": message}


def typing(room_id: str, user_id: str, is_typing: bool) -> Dict[str, Any]:
    return {"type": TYPING, "room_id": room_id, "user_id": user_id, "is_typing": is_typing}


def message_event(kind: str, room_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
    """new_message / message_updated / message_deleted envelope."""
    return {"type": kind, "room_id": room_id, "message": message}


def presence(user_id: str, is_online: bool, room_id: Optional[str] = None) -> Dict[str, Any]:
    """user_online / user_offline. room_id is only set for room-scoped status."""
    env: Dict[str, Any] = {"type": USER_ONLINE if is_online else USER_OFFLINE, "user_id": user_id}
    if room_id is not None:
        env["room_id"] = room_id
    return env
