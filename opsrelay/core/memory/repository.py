"""
Repository layer for chat database operations.

Read methods back the signaling core's store contract; the create methods are
used by the seed script and tests (the REST layer owns writes in production).
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session, selectinload, joinedload

from opsrelay.core.memory.models import User, ChatRoom, ChatMessage


logger = logging.getLogger(__name__)


def safe_refresh(db: Session, obj: Any) -> None:
    """Safely refresh an object, ignoring errors if session is closed."""
    try:
        if db.is_active:
            db.refresh(obj)
    except Exception:
        pass


class UserRepository:
    """Repository for user operations."""

    @staticmethod
    def create(
        db: Session,
        full_name: str,
        email: str,
        role: str = "USER",
        employee_id: Optional[str] = None,
    ) -> User:
        """Create a new user."""
        user = User(full_name=full_name, email=email, role=role, employee_id=employee_id)
        db.add(user)
        try:
            db.commit()
            safe_refresh(db, user)
        except Exception:
            db.rollback()
            raise
        return user

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email."""
        return db.query(User).filter(User.email == email).first()


class ChatRoomRepository:
    """Repository for chat room operations."""

    @staticmethod
    def create(
        db: Session,
        name: Optional[str],
        participant_ids: List[str],
        room_type: str = "department",
    ) -> ChatRoom:
        """Create a room with the given participants."""
        room = ChatRoom(name=name, room_type=room_type)
        if participant_ids:
            room.participants = db.query(User).filter(User.id.in_(participant_ids)).all()
        db.add(room)
        try:
            db.commit()
            safe_refresh(db, room)
        except Exception:
            db.rollback()
            raise
        return room

    @staticmethod
    def get_by_id(db: Session, room_id: str) -> Optional[ChatRoom]:
        """Get room by ID with participants loaded."""
        return (
            db.query(ChatRoom)
            .options(selectinload(ChatRoom.participants))
            .filter(ChatRoom.id == room_id)
            .first()
        )


class ChatMessageRepository:
    """Repository for chat message operations."""

    @staticmethod
    def create(
        db: Session,
        room_id: str,
        sender_id: str,
        message: str,
        reply_to_id: Optional[str] = None,
    ) -> ChatMessage:
        """Create a chat message."""
        msg = ChatMessage(room_id=room_id, sender_id=sender_id, message=message, reply_to_id=reply_to_id)
        db.add(msg)
        try:
            db.commit()
            safe_refresh(db, msg)
        except Exception:
            db.rollback()
            raise
        return msg

    @staticmethod
    def get_with_relations(db: Session, message_id: str) -> Optional[ChatMessage]:
        """Get a message with sender and reply target loaded."""
        return (
            db.query(ChatMessage)
            .options(joinedload(ChatMessage.sender), joinedload(ChatMessage.reply_to))
            .filter(ChatMessage.id == message_id)
            .first()
        )

    @staticmethod
    def to_enriched_dict(msg: ChatMessage) -> Dict[str, Any]:
        """Projection sent to clients: sender identity and reply target, no ORM objects."""
        sender = msg.sender
        reply = msg.reply_to
        return {
            "id": msg.id,
            "room_id": msg.room_id,
            "message": msg.message,
            "is_deleted": bool(msg.is_deleted),
            "created_at": msg.created_at.isoformat() if msg.created_at else None,
            "updated_at": msg.updated_at.isoformat() if msg.updated_at else None,
            "sender": {
                "id": sender.id,
                "full_name": sender.full_name,
                "email": sender.email,
                "employee_id": sender.employee_id,
            } if sender else None,
            "reply_to": {
                "id": reply.id,
                "message": reply.message,
                "sender_id": reply.sender_id,
            } if reply else None,
        }
