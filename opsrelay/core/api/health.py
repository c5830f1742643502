"""
Health check endpoint.

Returns service status and signaling counters.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(request: Request):
    """
    Health check endpoint.

    Returns:
        Service status plus connected users, active rooms and counters
    """
    signaling = request.app.state.signaling
    return {
        "status": "ok",
        "service": "opsrelay-signaling",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "signaling": signaling.stats(),
    }
