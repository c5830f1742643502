"""Observability: in-memory counters for the signaling server."""
from opsrelay.core.observability.metrics import SignalingMetrics

__all__ = ["SignalingMetrics"]
