"""
Room membership registry: room_id -> set of user_ids subscribed to its broadcasts.

Membership is transient and per process. It is distinct from persisted room
participation, which the chat store owns.
"""
import logging
from typing import Dict, FrozenSet, List, Set

logger = logging.getLogger(__name__)


class RoomRegistry:
    """In-memory subscription table. All methods are synchronous."""

    def __init__(self) -> None:
        self._members: Dict[str, Set[str]] = {}

    def add(self, room_id: str, user_id: str) -> None:
        self._members.setdefault(room_id, set()).add(user_id)
        logger.info("User %s joined room %s", user_id, room_id)

    def remove(self, room_id: str, user_id: str) -> bool:
        """Remove user from room. Idempotent; returns True if the user was a member."""
        members = self._members.get(room_id)
        if not members or user_id not in members:
            return False
        members.discard(user_id)
        if not members:
            del self._members[room_id]
        logger.info("User %s left room %s", user_id, room_id)
        return True

    def purge_user(self, user_id: str) -> List[str]:
        """Remove user from every room. Returns the rooms it was removed from."""
        removed = []
        for room_id in list(self._members):
            members = self._members[room_id]
            if user_id in members:
                members.discard(user_id)
                removed.append(room_id)
                if not members:
                    del self._members[room_id]
        return removed

    def members(self, room_id: str) -> FrozenSet[str]:
        """Snapshot of the room's members."""
        return frozenset(self._members.get(room_id, ()))

    def is_member(self, room_id: str, user_id: str) -> bool:
        return user_id in self._members.get(room_id, ())

    def rooms_for(self, user_id: str) -> List[str]:
        return [room_id for room_id, members in self._members.items() if user_id in members]

    @property
    def active_rooms(self) -> int:
        """Number of rooms with at least one subscribed user."""
        return len(self._members)
