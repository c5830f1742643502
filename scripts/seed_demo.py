#!/usr/bin/env python3
"""
Demo initialization script.
Creates two staff users and a shared room, then prints WebSocket tokens.

Run from repository root: python scripts/seed_demo.py
"""
import sys
import os

# Ensure repo root is on path when run as scripts/seed_demo.py
_repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from opsrelay.core.config import settings
from opsrelay.core.memory.db import init_db, db_session
from opsrelay.core.memory.repository import ChatRoomRepository, UserRepository
from opsrelay.core.security.tokens import create_access_token

DEMO_USERS = [
    ("Dispatch Desk", "dispatch@example.com", "USER"),
    ("Invoicing Desk", "invoicing@example.com", "USER"),
]


def init_demo():
    """Initialize demo data. Returns (room_id, {email: token})."""
    init_db()

    with db_session() as db:
        users = []
        for full_name, email, role in DEMO_USERS:
            user = UserRepository.get_by_email(db, email)
            if user is None:
                user = UserRepository.create(db, full_name=full_name, email=email, role=role)
                print(f"✅ Created user {email} with ID: {user.id}")
            users.append(user)

        room = ChatRoomRepository.create(db, name="Operations", participant_ids=[u.id for u in users])
        print(f"✅ Created room 'Operations' with ID: {room.id}")

        tokens = {
            u.email: create_access_token({"user_id": u.id, "role": u.role})
            for u in users
        }
        return room.id, tokens


if __name__ == "__main__":
    room_id, tokens = init_demo()
    print(f"\n🎉 Demo initialized! Room ID: {room_id}")
    print("\nNext steps:")
    print("1. Start the server: python -m opsrelay.core.main")
    for email, token in tokens.items():
        print(f"2. Connect as {email}: ws://localhost:{settings.api_port}{settings.ws_path}?token={token}")
    print(f'3. Send {{"type": "join_room", "room_id": "{room_id}"}}')
