"""
Debounced typing indicators per (room, user).

A typing:true signal (re)starts a timer; if no renewal arrives before it fires,
the tracker clears the state and broadcasts typing:false on the typist's
behalf, so a client that never sends typing:false does not leave a stale
indicator behind.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.broadcaster import Broadcaster
from opsrelay.core.websocket.rooms import RoomRegistry

logger = logging.getLogger(__name__)

TYPING_TIMEOUT = 3.0  # seconds


class TypingTracker:
    """room_id -> user_id -> pending expiry task."""

    def __init__(
        self,
        rooms: RoomRegistry,
        broadcaster: Broadcaster,
        timeout: float = TYPING_TIMEOUT,
    ) -> None:
        self._rooms = rooms
        self._broadcaster = broadcaster
        self.timeout = timeout
        self._timers: Dict[str, Dict[str, asyncio.Task]] = {}

    async def signal(self, room_id: str, user_id: str, is_typing: bool) -> bool:
        """
        Handle an explicit typing signal from user_id in room_id.

        Ignored (returns False) unless the user is a member of the room.
        Otherwise the debounce state is updated and the signal is broadcast
        to the other members right away.
        """
        if not self._rooms.is_member(room_id, user_id):
            return False
        if is_typing:
            self.start(room_id, user_id)
        else:
            self.clear(room_id, user_id)
        await self._broadcaster.broadcast_to_room(
            room_id,
            protocol.typing(room_id, user_id, is_typing),
            exclude_user_id=user_id,
        )
        return True

    def start(self, room_id: str, user_id: str) -> None:
        """Start or refresh the expiry timer for (room_id, user_id)."""
        self.clear(room_id, user_id)
        task = asyncio.create_task(self._expire_after(room_id, user_id))
        self._timers.setdefault(room_id, {})[user_id] = task

    def clear(self, room_id: str, user_id: str) -> bool:
        """Cancel the pending timer, if any. Returns True if one was pending."""
        room_timers = self._timers.get(room_id)
        if not room_timers:
            return False
        task = room_timers.pop(user_id, None)
        if not room_timers:
            del self._timers[room_id]
        if task is None:
            return False
        if task is not asyncio.current_task():
            task.cancel()
        return True

    def purge_user(self, user_id: str) -> List[str]:
        """Cancel every timer owned by user_id. Returns the affected rooms."""
        rooms = [room_id for room_id, timers in self._timers.items() if user_id in timers]
        for room_id in rooms:
            self.clear(room_id, user_id)
        return rooms

    def is_typing(self, room_id: str, user_id: str) -> bool:
        return user_id in self._timers.get(room_id, {})

    def typists(self, room_id: str) -> List[str]:
        return list(self._timers.get(room_id, {}))

    @property
    def active_count(self) -> int:
        return sum(len(timers) for timers in self._timers.values())

    def shutdown(self) -> None:
        """Cancel all timers without broadcasting."""
        for timers in self._timers.values():
            for task in timers.values():
                task.cancel()
        self._timers.clear()

    async def _expire_after(self, room_id: str, user_id: str) -> None:
        await asyncio.sleep(self.timeout)
        room_timers: Optional[Dict[str, asyncio.Task]] = self._timers.get(room_id)
        # A refresh replaces the task; only the current one may expire the state
        if not room_timers or room_timers.get(user_id) is not asyncio.current_task():
            return
        self.clear(room_id, user_id)
        logger.debug("Typing indicator expired for user %s in room %s", user_id, room_id)
        try:
            await self._broadcaster.broadcast_to_room(
                room_id,
                protocol.typing(room_id, user_id, False),
                exclude_user_id=user_id,
            )
        except Exception as e:
            logger.exception("Typing expiry broadcast failed for room %s: %s", room_id, e)
