"""Connection lifecycle through the signaling context: connect, supersede, disconnect cascade."""
import asyncio

import pytest

from opsrelay.core.security.tokens import Principal
from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.connection import ConnectionState
from opsrelay.core.websocket.errors import AuthenticationError
from tests.conftest import ROOM_R, ROOM_S, FakeWebSocket, connect_user


@pytest.mark.asyncio
async def test_connect_sends_ack_and_presence(ctx):
    conn_a, ws_a = await connect_user(ctx, "user-a")
    assert ws_a.sent == [{"type": "connected", "user_id": "user-a"}]
    assert conn_a.state is ConnectionState.AUTHENTICATED

    _, ws_b = await connect_user(ctx, "user-b")
    assert ws_b.sent == [{"type": "connected", "user_id": "user-b"}]
    # Presence goes to everyone else, regardless of room membership
    assert ws_a.sent[-1] == {"type": "user_online", "user_id": "user-b"}
    assert ctx.metrics.get("connections_opened") == 2


@pytest.mark.asyncio
async def test_authenticate_counts_failures(ctx):
    with pytest.raises(AuthenticationError):
        await ctx.authenticate("")
    with pytest.raises(AuthenticationError):
        await ctx.authenticate("forged")
    principal = await ctx.authenticate("token-a")
    assert principal == Principal("user-a")
    assert ctx.metrics.get("auth_failures") == 2
    assert len(ctx.connections) == 0


@pytest.mark.asyncio
async def test_second_handshake_closes_and_purges_superseded_socket(ctx):
    old_conn, old_ws = await connect_user(ctx, "user-a")
    _, ws_b = await connect_user(ctx, "user-b")
    await ctx.join_room(old_conn, ROOM_R)
    ctx.typing.start(ROOM_R, "user-a")

    new_conn, new_ws = await connect_user(ctx, "user-a")

    assert ctx.connections.get("user-a") is new_conn
    assert len(ctx.connections) == 2
    assert old_ws.closed == (protocol.CLOSE_REPLACED, "Replaced by new connection")
    assert old_conn.state is ConnectionState.CLOSED
    assert not ctx.rooms.is_member(ROOM_R, "user-a")
    assert not ctx.typing.is_typing(ROOM_R, "user-a")
    assert new_ws.sent == [{"type": "connected", "user_id": "user-a"}]
    # user-a never went offline, so no presence churn for user-b
    assert ws_b.of_type("user_offline") == []
    assert ws_b.of_type("user_online") == []
    assert ctx.metrics.get("connections_replaced") == 1

    # The old socket's own cleanup later is a no-op
    assert await ctx.disconnect(old_conn) is False
    assert ctx.connections.get("user-a") is new_conn


@pytest.mark.asyncio
async def test_disconnect_purges_rooms_and_typing_timers(ctx):
    conn_a, _ = await connect_user(ctx, "user-a")
    conn_b, ws_b = await connect_user(ctx, "user-b")
    for room_id in (ROOM_R, ROOM_S):
        await ctx.join_room(conn_a, room_id)
        await ctx.join_room(conn_b, room_id)
        await ctx.typing_signal(conn_a, room_id, True)
    assert ctx.typing.active_count == 2

    assert await ctx.disconnect(conn_a) is True

    assert conn_a.state is ConnectionState.CLOSED
    assert "user-a" not in ctx.rooms.members(ROOM_R)
    assert "user-a" not in ctx.rooms.members(ROOM_S)
    assert ctx.rooms.rooms_for("user-a") == []
    assert ctx.typing.active_count == 0
    assert not ctx.connections.is_connected("user-a")
    assert ws_b.sent[-1] == {"type": "user_offline", "user_id": "user-a"}

    seen = len(ws_b.sent)
    await asyncio.sleep(ctx.typing.timeout * 4)
    # No expiry fired for the departed user
    assert len(ws_b.sent) == seen
    assert await ctx.disconnect(conn_a) is False


@pytest.mark.asyncio
async def test_join_dropped_when_connection_closes_during_lookup(ctx, store):
    conn_a, ws_a = await connect_user(ctx, "user-a")
    release = asyncio.Event()
    original = store.find_room

    async def slow_find_room(room_id):
        await release.wait()
        return await original(room_id)

    store.find_room = slow_find_room
    join = asyncio.create_task(ctx.join_room(conn_a, ROOM_R))
    await asyncio.sleep(0)
    await ctx.disconnect(conn_a)
    release.set()

    assert await join is False
    assert ctx.rooms.members(ROOM_R) == frozenset()
    assert ws_a.of_type("room_joined") == []


@pytest.mark.asyncio
async def test_connect_failure_leaves_no_registration(ctx):
    with pytest.raises(Exception):
        await ctx.connect(FakeWebSocket(fail_on_send=True), Principal("user-a"))
    assert not ctx.connections.is_connected("user-a")


@pytest.mark.asyncio
async def test_stats(ctx):
    conn_a, _ = await connect_user(ctx, "user-a")
    await ctx.join_room(conn_a, ROOM_R)
    stats = ctx.stats()
    assert stats["connected_users"] == 1
    assert stats["active_rooms"] == 1
    assert stats["counters"]["connections_opened"] == 1
