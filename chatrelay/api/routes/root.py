# chatrelay/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the relay and its endpoints.
    """
    return {
        "message": "chatrelay - realtime room chat",
        "version": "1.0",
        "features": ["rooms", "presence", "typing", "media_upload"],
        "endpoints": {
            "websocket": "/ws",
            "upload": "/upload",
            "uploads": "/uploads/{file}",
            "room_users": "/rooms/{room}/users",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
