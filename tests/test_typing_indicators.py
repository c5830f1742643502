"""Debounced typing indicators."""
import asyncio

import pytest

from tests.conftest import ROOM_R, connect_user


async def _room_with(ctx, *user_ids):
    users = {}
    for user_id in user_ids:
        conn, ws = await connect_user(ctx, user_id)
        await ctx.join_room(conn, ROOM_R)
        users[user_id] = (conn, ws)
    return users


def _typing_frames(ws):
    return ws.of_type("typing")


@pytest.mark.asyncio
async def test_typing_ignored_for_non_member(ctx):
    users = await _room_with(ctx, "user-b")
    conn_a, ws_a = await connect_user(ctx, "user-a")
    assert await ctx.typing_signal(conn_a, ROOM_R, True) is False
    assert not ctx.typing.is_typing(ROOM_R, "user-a")
    assert _typing_frames(users["user-b"][1]) == []
    assert _typing_frames(ws_a) == []


@pytest.mark.asyncio
async def test_typing_broadcast_excludes_sender(ctx):
    users = await _room_with(ctx, "user-a", "user-b", "user-c")
    conn_a, ws_a = users["user-a"]
    await ctx.typing_signal(conn_a, ROOM_R, True)
    expected = {"type": "typing", "room_id": ROOM_R, "user_id": "user-a", "is_typing": True}
    assert _typing_frames(users["user-b"][1]) == [expected]
    assert _typing_frames(users["user-c"][1]) == [expected]
    assert _typing_frames(ws_a) == []
    ctx.typing.shutdown()


@pytest.mark.asyncio
async def test_typing_expires_once_despite_refreshes(ctx):
    users = await _room_with(ctx, "user-a", "user-b")
    conn_a, _ = users["user-a"]
    ws_b = users["user-b"][1]
    for _ in range(3):
        await ctx.typing_signal(conn_a, ROOM_R, True)
        await asyncio.sleep(ctx.typing.timeout / 4)
    await asyncio.sleep(ctx.typing.timeout * 4)

    flags = [f["is_typing"] for f in _typing_frames(ws_b)]
    assert flags == [True, True, True, False]
    assert not ctx.typing.is_typing(ROOM_R, "user-a")


@pytest.mark.asyncio
async def test_explicit_false_cancels_expiry(ctx):
    users = await _room_with(ctx, "user-a", "user-b")
    conn_a, _ = users["user-a"]
    await ctx.typing_signal(conn_a, ROOM_R, True)
    await ctx.typing_signal(conn_a, ROOM_R, False)
    await asyncio.sleep(ctx.typing.timeout * 4)
    flags = [f["is_typing"] for f in _typing_frames(users["user-b"][1])]
    assert flags == [True, False]


@pytest.mark.asyncio
async def test_leave_room_cancels_timer(ctx):
    users = await _room_with(ctx, "user-a", "user-b")
    conn_a, _ = users["user-a"]
    await ctx.typing_signal(conn_a, ROOM_R, True)
    ctx.leave_room(conn_a, ROOM_R)
    assert ctx.typing.active_count == 0
    await asyncio.sleep(ctx.typing.timeout * 4)
    flags = [f["is_typing"] for f in _typing_frames(users["user-b"][1])]
    assert flags == [True]


@pytest.mark.asyncio
async def test_shutdown_cancels_everything(ctx):
    users = await _room_with(ctx, "user-a", "user-b")
    await ctx.typing_signal(users["user-a"][0], ROOM_R, True)
    await ctx.typing_signal(users["user-b"][0], ROOM_R, True)
    assert sorted(ctx.typing.typists(ROOM_R)) == ["user-a", "user-b"]
    ctx.typing.shutdown()
    assert ctx.typing.active_count == 0
