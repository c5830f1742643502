"""
Read-only chat store contract used by the signaling core.

find_room and fetch_enriched_message are the only two ways the core reaches
persisted data. The SQL implementation runs its queries in the default
executor so the event loop never blocks on SQLite.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from opsrelay.core.memory.repository import ChatMessageRepository, ChatRoomRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomRecord:
    """Detached snapshot of a persisted room."""
    id: str
    participants: FrozenSet[str] = field(default_factory=frozenset)
    name: Optional[str] = None
    room_type: str = "department"


class ChatStore(ABC):
    """Persistence collaborator for rooms and messages."""

    @abstractmethod
    async def find_room(self, room_id: str) -> Optional[RoomRecord]:
        """Return the room or None if it does not exist."""
        pass

    @abstractmethod
    async def fetch_enriched_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        """Return the message projection (sender identity, reply target) or None."""
        pass


class SqlChatStore(ChatStore):
    """ChatStore backed by the SQLAlchemy repositories."""

    def __init__(self, session_factory: Optional[Callable[[], ContextManager[Session]]] = None) -> None:
        if session_factory is None:
            from opsrelay.core.memory.db import db_session
            session_factory = db_session
        self._session_factory = session_factory

    async def find_room(self, room_id: str) -> Optional[RoomRecord]:
        def _fetch() -> Optional[RoomRecord]:
            with self._session_factory() as db:
                room = ChatRoomRepository.get_by_id(db, room_id)
                if room is None:
                    return None
                return RoomRecord(
                    id=room.id,
                    participants=frozenset(u.id for u in room.participants),
                    name=room.name,
                    room_type=room.room_type,
                )

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _fetch)

    async def fetch_enriched_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        def _fetch() -> Optional[Dict[str, Any]]:
            with self._session_factory() as db:
                msg = ChatMessageRepository.get_with_relations(db, message_id)
                if msg is None:
                    return None
                return ChatMessageRepository.to_enriched_dict(msg)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _fetch)
