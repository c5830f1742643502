"""
WebSocket signaling layer: handshake, room membership, typing indicators,
heartbeat and broadcast for the operations chat UI.

One connection per user. Heartbeat every 30s; dead peers dropped within two ticks.
The process-wide state lives in opsrelay.core.websocket.context.SignalingContext.
"""

from opsrelay.core.websocket.manager import ConnectionManager

__all__ = ["ConnectionManager"]
