"""
WebSocket route: <ws_path>?token=... Accept, auth, register, message loop, cleanup.
"""
import asyncio
import logging
from urllib.parse import parse_qs

from fastapi import WebSocket

from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.context import SignalingContext
from opsrelay.core.websocket.errors import AuthenticationError, ValidationError
from opsrelay.core.websocket.handler import handle_message, parse_frame, send_error

logger = logging.getLogger(__name__)


def _get_token(websocket: WebSocket) -> str:
    """Token comes from the query string: headers are not available to browser clients before upgrade."""
    query_string = websocket.scope.get("query_string", b"").decode("utf-8")
    params = parse_qs(query_string)
    tokens = params.get("token", [])
    return tokens[0] if tokens else ""


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept WebSocket, validate token from query, register, run message loop."""
    ctx: SignalingContext = websocket.app.state.signaling
    await websocket.accept()

    try:
        principal = await ctx.authenticate(_get_token(websocket))
    except AuthenticationError as e:
        logger.warning("WebSocket connection rejected: %s", e)
        await websocket.close(code=protocol.CLOSE_POLICY_VIOLATION, reason=str(e))
        return

    try:
        conn = await ctx.connect(websocket, principal)
    except Exception as e:
        logger.exception("WebSocket connection setup error: %s", e)
        try:
            await websocket.close(code=protocol.CLOSE_INTERNAL_ERROR, reason="Internal server error")
        except RuntimeError as close_error:
            logger.debug("Close after setup error failed: %s", close_error)
        return

    try:
        while conn.is_open:
            try:
                message = await asyncio.wait_for(
                    websocket.receive(), timeout=ctx.settings.heartbeat_interval_seconds
                )
            except asyncio.TimeoutError:
                # Heartbeat monitor may have terminated us while we waited
                continue
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            try:
                data = parse_frame(raw, ctx.settings.max_frame_size)
            except ValidationError as e:
                conn.is_alive = True
                await send_error(ctx, conn, str(e))
                continue
            await handle_message(ctx, conn, data)
    except RuntimeError as e:
        # Starlette raises once the socket is no longer connected
        logger.debug("WebSocket receive loop ended for user %s: %s", conn.user_id, e)
    finally:
        # A cancelled handler task must not cut the disconnect cascade short
        await asyncio.shield(ctx.disconnect(conn))
