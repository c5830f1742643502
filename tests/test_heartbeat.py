"""Heartbeat liveness sweep."""
import asyncio

import pytest

from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.connection import ConnectionState
from opsrelay.core.websocket.handler import handle_message
from tests.conftest import ROOM_R, FakeWebSocket, connect_user


@pytest.mark.asyncio
async def test_tick_pings_and_clears_flag(ctx):
    conn, ws = await connect_user(ctx, "user-a")
    assert await ctx.heartbeat.tick() == 0
    assert ws.sent[-1] == {"type": "ping"}
    assert conn.is_alive is False


@pytest.mark.asyncio
async def test_pong_keeps_connection_alive(ctx):
    conn, ws = await connect_user(ctx, "user-a")
    for _ in range(3):
        await ctx.heartbeat.tick()
        await handle_message(ctx, conn, {"type": "pong"})
    assert conn.is_open
    assert ws.closed is None
    assert ws.of_type("error") == []


@pytest.mark.asyncio
async def test_silent_peer_terminated_within_two_ticks(ctx):
    conn_a, ws_a = await connect_user(ctx, "user-a")
    conn_b, ws_b = await connect_user(ctx, "user-b")
    await ctx.join_room(conn_a, ROOM_R)
    await ctx.join_room(conn_b, ROOM_R)
    await ctx.typing_signal(conn_a, ROOM_R, True)

    await ctx.heartbeat.tick()
    await handle_message(ctx, conn_b, {"type": "pong"})
    assert await ctx.heartbeat.tick() == 1

    assert conn_a.state is ConnectionState.CLOSED
    assert ws_a.closed == (protocol.CLOSE_HEARTBEAT_TIMEOUT, "heartbeat_timeout")
    assert not ctx.connections.is_connected("user-a")
    assert not ctx.rooms.is_member(ROOM_R, "user-a")
    assert ctx.typing.active_count == 0
    assert ws_b.sent[-2:] == [
        {"type": "user_offline", "user_id": "user-a"},
        {"type": "ping"},
    ]
    assert conn_b.is_open
    assert ctx.metrics.get("heartbeat_terminations") == 1


@pytest.mark.asyncio
async def test_any_inbound_frame_counts_as_liveness(ctx):
    conn, _ = await connect_user(ctx, "user-a")
    await ctx.heartbeat.tick()
    await handle_message(ctx, conn, {"type": "ping"})
    assert await ctx.heartbeat.tick() == 0
    assert conn.is_open


@pytest.mark.asyncio
async def test_failed_ping_does_not_stop_sweep(ctx):
    broken = FakeWebSocket()
    await connect_user(ctx, "user-a", websocket=broken)
    conn_b, ws_b = await connect_user(ctx, "user-b")
    broken.fail_on_send = True
    await ctx.heartbeat.tick()
    assert ws_b.sent[-1] == {"type": "ping"}
    await handle_message(ctx, conn_b, {"type": "pong"})
    # The unreachable socket never answers and is dropped on the next tick
    assert await ctx.heartbeat.tick() == 1
    assert not ctx.connections.is_connected("user-a")


@pytest.mark.asyncio
async def test_monitor_start_stop(ctx):
    ctx.heartbeat.interval = 0.01
    conn, ws = await connect_user(ctx, "user-a")
    await ctx.start()
    assert ctx.heartbeat.running
    await asyncio.sleep(0.1)
    await ctx.stop()
    assert not ctx.heartbeat.running
    # Never answered, so it was pinged and then terminated
    assert ws.of_type("ping")
    assert ws.closed == (protocol.CLOSE_HEARTBEAT_TIMEOUT, "heartbeat_timeout")
