# chatrelay/api/routes/health.py

from fastapi import APIRouter

from chatrelay.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns current system status, connection counts, and room counts.
    Used by container health probes and monitoring.

    Returns:
        dict: Status, open connections, joined sessions, active room count
    """
    return {
        "status": "healthy",
        "connections": len(state.connection_manager.connections),
        "sessions": len(state.registry),
        "active_rooms": len(state.room_directory.list_rooms()),
    }
