# chatrelay/api/routes/metrics.py
from fastapi import APIRouter
from datetime import datetime, timezone

from chatrelay.core import state

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Relay usage metrics.

    Returns:
        dict: Message statistics and current capacity:
            - total chat + media messages relayed since start
            - uptime and messages/sec
            - concurrent connections and joined sessions
            - active rooms with their member counts

    Example Response:
        {
            "total_messages": 120,
            "uptime_hours": 1.5,
            "messages_per_second": 0.02,
            "concurrent_connections": 4,
            "joined_sessions": 3,
            "active_rooms": {"lobby": 2, "random": 1}
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    total = state.session_handler.message_counter

    if uptime_seconds > 0:
        messages_per_second = total / uptime_seconds
    else:
        messages_per_second = 0

    return {
        # Statistics
        "total_messages": total,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "concurrent_connections": len(state.connection_manager.connections),
        "joined_sessions": len(state.registry),
        "active_rooms": state.room_directory.list_rooms(),
    }
