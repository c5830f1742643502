"""
SQLAlchemy models for the OpsRelay chat store.

Defines users, chat rooms with their participants, and chat messages. The
signaling core only reads these tables; the back-office REST layer owns writes.
"""
import secrets

from sqlalchemy import (
    Column, String, Text, Boolean,
    DateTime, ForeignKey, Index, Table
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def new_object_id() -> str:
    """24-hex-character document id (same shape the chat UI validates)."""
    return secrets.token_hex(12)


room_participants = Table(
    "chat_room_participants",
    Base.metadata,
    Column("room_id", String(24), ForeignKey("chat_rooms.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(24), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """Back-office staff member."""
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=new_object_id)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    employee_id = Column(String(64), nullable=True, index=True)
    role = Column(String(50), default="USER", nullable=False)  # SUPERADMIN, ADMIN, USER
    created_at = Column(DateTime, default=func.now(), nullable=False)

    rooms = relationship("ChatRoom", secondary=room_participants, back_populates="participants")


class ChatRoom(Base):
    """A chat room (department channel or direct chat)."""
    __tablename__ = "chat_rooms"

    id = Column(String(24), primary_key=True, default=new_object_id)
    name = Column(String(255), nullable=True)
    room_type = Column(String(20), default="department", nullable=False)  # department, direct
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    participants = relationship("User", secondary=room_participants, back_populates="rooms")
    messages = relationship("ChatMessage", back_populates="room", cascade="all, delete-orphan")


class ChatMessage(Base):
    """A message posted to a chat room."""
    __tablename__ = "chat_messages"

    id = Column(String(24), primary_key=True, default=new_object_id)
    room_id = Column(String(24), ForeignKey("chat_rooms.id"), nullable=False, index=True)
    sender_id = Column(String(24), ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    reply_to_id = Column(String(24), ForeignKey("chat_messages.id"), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    room = relationship("ChatRoom", back_populates="messages")
    sender = relationship("User")
    reply_to = relationship("ChatMessage", remote_side=[id])

    __table_args__ = (
        Index("idx_chat_message_room_created", "room_id", "created_at"),
    )
