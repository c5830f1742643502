"""
WebSocket message handling: parse inbound frames and dispatch by `type`.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict

from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.connection import Connection
from opsrelay.core.websocket.context import SignalingContext
from opsrelay.core.websocket.errors import SignalingError, TransportError, ValidationError

logger = logging.getLogger(__name__)

Handler = Callable[[SignalingContext, Connection, Dict[str, Any]], Awaitable[None]]


def parse_frame(raw: str, max_size: int) -> Dict[str, Any]:
    """
    Decode a text frame into an envelope dict.

    Raises:
        ValidationError: frame too large, not JSON, or not a JSON object
    """
    if len(raw) > max_size:
        raise ValidationError("Frame too large")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Invalid message format")
    if not isinstance(data, dict):
        raise ValidationError("Invalid message format")
    return data


async def _join_room(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    await ctx.join_room(conn, data.get("room_id"))


async def _leave_room(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    ctx.leave_room(conn, data.get("room_id"))


async def _typing(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    await ctx.typing_signal(conn, data.get("room_id"), data.get("is_typing") is True)


async def _ping(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    await conn.send({"type": protocol.PONG})


async def _pong(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    # Liveness already recorded by handle_message
    return None


HANDLERS: Dict[str, Handler] = {
    protocol.JOIN_ROOM: _join_room,
    protocol.LEAVE_ROOM: _leave_room,
    protocol.TYPING: _typing,
    protocol.PING: _ping,
    protocol.PONG: _pong,
}


async def send_error(ctx: SignalingContext, conn: Connection, message: str) -> None:
    """Send an `error` frame; a failed send is only logged."""
    ctx.metrics.incr("errors_sent")
    try:
        await conn.send(protocol.error(message))
    except TransportError as e:
        logger.debug("Error reply to user %s not delivered: %s", conn.user_id, e)


async def handle_message(ctx: SignalingContext, conn: Connection, data: Dict[str, Any]) -> None:
    """
    Dispatch one envelope. Marks the connection alive on any received frame.

    Recoverable errors become an `error` reply; the connection stays open.
    """
    conn.is_alive = True
    msg_type = data.get("type")
    handler = HANDLERS.get(msg_type) if isinstance(msg_type, str) else None
    if handler is None:
        await send_error(ctx, conn, f"Unknown message type: {msg_type}")
        return
    try:
        await handler(ctx, conn, data)
    except TransportError as e:
        logger.debug("Reply to user %s for %s not delivered: %s", conn.user_id, msg_type, e)
    except SignalingError as e:
        await send_error(ctx, conn, str(e))
