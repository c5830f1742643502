"""
Room id validation and the single room access check.

authorize_room_access is used both when a client joins a room and when the
server fans out a room-scoped notification, so a participant removed from a
room stops receiving its broadcasts even while still subscribed.
"""
import re
from typing import Iterable, Optional

from opsrelay.core.memory.chat_store import RoomRecord

_OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")


def is_valid_room_id(room_id) -> bool:
    """True if room_id has the shape of a persisted document id (24 hex chars)."""
    return isinstance(room_id, str) and _OBJECT_ID_RE.fullmatch(room_id) is not None


def authorize_room_access(
    user_id: str,
    room: RoomRecord,
    role: Optional[str] = None,
    admin_roles: Iterable[str] = (),
) -> bool:
    """Participants may access their rooms; admin roles may access any room."""
    if role and role in set(admin_roles):
        return True
    return user_id in room.participants
