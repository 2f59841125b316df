# chatrelay/api/routes/rooms.py

from fastapi import APIRouter

from chatrelay.core import state
from chatrelay.models.models import RoomUsers

router = APIRouter()

# ============================================================================
# ROOM ROSTER ENDPOINT
# ============================================================================

@router.get("/rooms/{room}/users", response_model=RoomUsers)
async def get_room_users(room: str):
    """
    Current roster of a room.

    Rooms exist only while someone is in them, so an unknown room is not an
    error: it just has no users.

    Args:
        room: Room name

    Returns:
        RoomUsers: room name and usernames in join order
    """
    return RoomUsers(room=room, users=state.room_directory.members_of(room))
