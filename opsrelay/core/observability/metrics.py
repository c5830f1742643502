"""
Simple in-memory counters for the signaling server: connections, auth failures,
heartbeat terminations, broadcasts and failed deliveries.
"""
import logging
from typing import Dict

logger = logging.getLogger("opsrelay.signaling.metrics")


class SignalingMetrics:
    """In-memory counters, one instance per signaling context."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {
            "connections_opened": 0,
            "connections_closed": 0,
            "connections_replaced": 0,
            "auth_failures": 0,
            "heartbeat_terminations": 0,
            "broadcasts": 0,
            "deliveries": 0,
            "delivery_failures": 0,
            "errors_sent": 0,
        }

    def incr(self, name: str, amount: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + amount

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counters)

    def log_summary(self) -> None:
        logger.info(
            "signaling_metrics opened=%d closed=%d replaced=%d auth_failures=%d heartbeat_terminations=%d delivery_failures=%d",
            self.get("connections_opened"),
            self.get("connections_closed"),
            self.get("connections_replaced"),
            self.get("auth_failures"),
            self.get("heartbeat_terminations"),
            self.get("delivery_failures"),
        )
