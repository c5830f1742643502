"""
Shared fixtures: in-memory fakes for sockets, the chat store and the token verifier.
"""
import os
import tempfile

# Keep the default SQLite file out of the home directory when main is imported
os.environ.setdefault(
    "DATABASE_PATH",
    os.path.join(tempfile.mkdtemp(prefix="opsrelay_test_"), "opsrelay.db"),
)

import pytest

from opsrelay.core.config import Settings
from opsrelay.core.memory.chat_store import ChatStore, RoomRecord
from opsrelay.core.security.tokens import Principal
from opsrelay.core.websocket.context import SignalingContext
from opsrelay.core.websocket.errors import AuthenticationError

ROOM_R = "5f1d7c2e9b3a4c6d8e0f1a2b"
ROOM_S = "64b7f0c2d1e3a5b6c7d8e9f0"
MISSING_ROOM = "000000000000000000000000"


class FakeWebSocket:
    """Records frames sent by the server; can be told to fail like a closing socket."""

    def __init__(self, fail_on_send: bool = False):
        self.sent = []
        self.closed = None
        self.fail_on_send = fail_on_send

    async def send_json(self, obj):
        if self.fail_on_send:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(obj)

    async def close(self, code: int = 1000, reason=None):
        self.closed = (code, reason)

    def of_type(self, msg_type):
        return [m for m in self.sent if m.get("type") == msg_type]


class FakeChatStore(ChatStore):
    def __init__(self):
        self.rooms = {}
        self.messages = {}
        self.fail = False
        self.find_room_calls = 0

    def add_room(self, room_id, participants):
        self.rooms[room_id] = RoomRecord(id=room_id, participants=frozenset(participants))

    async def find_room(self, room_id):
        self.find_room_calls += 1
        if self.fail:
            raise RuntimeError("database is locked")
        return self.rooms.get(room_id)

    async def fetch_enriched_message(self, message_id):
        return self.messages.get(message_id)


class FakeVerifier:
    """token -> Principal; anything else is rejected."""

    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})

    async def verify(self, token):
        if not token:
            raise AuthenticationError("Authentication required")
        principal = self.tokens.get(token)
        if principal is None:
            raise AuthenticationError("Invalid token")
        return principal


@pytest.fixture
def test_settings():
    return Settings(
        heartbeat_interval_seconds=60.0,
        typing_timeout_seconds=0.05,
        presence_enabled=True,
        room_admin_roles=["SUPERADMIN"],
    )


@pytest.fixture
def store():
    s = FakeChatStore()
    s.add_room(ROOM_R, ["user-a", "user-b", "user-c"])
    s.add_room(ROOM_S, ["user-a", "user-b"])
    return s


@pytest.fixture
def verifier():
    return FakeVerifier({
        "token-a": Principal("user-a"),
        "token-b": Principal("user-b"),
        "token-c": Principal("user-c"),
        "token-admin": Principal("user-admin", role="SUPERADMIN"),
    })


@pytest.fixture
def ctx(store, verifier, test_settings):
    return SignalingContext(store=store, verifier=verifier, settings=test_settings)


async def connect_user(ctx, user_id, role=None, websocket=None):
    """Register a fake socket for user_id through the normal connect path."""
    ws = websocket or FakeWebSocket()
    conn = await ctx.connect(ws, Principal(user_id, role))
    return conn, ws
