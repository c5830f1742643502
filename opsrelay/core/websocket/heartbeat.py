"""
Heartbeat monitor: one periodic sweep over all registered connections.

Each tick, a connection whose liveness flag is still False (previous ping
unanswered) is terminated; every other connection gets its flag cleared and a
fresh ping. Any inbound frame, pong included, sets the flag back to True, so a
dead peer is detected within two intervals.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from opsrelay.core.websocket import protocol
from opsrelay.core.websocket.connection import Connection
from opsrelay.core.websocket.errors import TransportError
from opsrelay.core.websocket.manager import ConnectionManager

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 30.0  # seconds


class HeartbeatMonitor:
    """Periodic liveness sweep. on_timeout runs the full disconnect cascade."""

    def __init__(
        self,
        connections: ConnectionManager,
        on_timeout: Callable[[Connection], Awaitable[None]],
        interval: float = HEARTBEAT_INTERVAL,
    ) -> None:
        self._connections = connections
        self._on_timeout = on_timeout
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> int:
        """Run one sweep. Returns the number of connections terminated."""
        terminated = 0
        for conn in self._connections.connections():
            # Earlier awaits in this sweep may have closed or replaced it
            if not self._connections.is_current(conn):
                continue
            if not conn.is_alive:
                logger.info("WebSocket heartbeat timeout for user_id=%s", conn.user_id)
                await self._on_timeout(conn)
                terminated += 1
                continue
            conn.is_alive = False
            try:
                await conn.send({"type": protocol.PING})
            except TransportError as e:
                logger.debug("Heartbeat ping failed for user %s: %s", conn.user_id, e)
        return terminated

    async def run(self) -> None:
        """Tick every interval until cancelled."""
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Heartbeat tick failed: %s", e)

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self.run())
        logger.info("Heartbeat monitor started (tick every %ss)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Heartbeat monitor stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
