# chatrelay/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatrelay.core import state

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the realtime chat protocol.

    Every frame, in both directions, is a JSON object:
        {"event": "<name>", "data": <payload>}

    Client -> Server Events:
    ------------------------
    Join Room:
        {"event": "join", "data": {"username": "alice", "room": "lobby"}}
        Others in room: {"event": "system", "data": {"message": "alice joined the room", "timestamp": ...}}
        Whole room:     {"event": "room-users", "data": ["alice", "bob"]}

    Send Message:
        {"event": "message", "data": {"text": "hi"}}
        Whole room: {"event": "message", "data": {"id": "...", "username": "alice", "text": "hi", "timestamp": ...}}

    Announce Media (after POST /upload):
        {"event": "media", "data": {"url": "/uploads/...", "mimetype": "image/png"}}
        Whole room: {"event": "media", "data": {"id": "...", "username": "alice", "url": "...", "mimetype": "...", "timestamp": ...}}

    Typing:
        {"event": "typing"} / {"event": "stop-typing"}
        Others in room: {"event": "typing", "data": {"username": "alice"}}

    Lifecycle:
    ==========
    1. Client connects, gets a fresh connection id
    2. Client sends "join" (and replays it after any reconnect)
    3. Client receives events for its current room only
    4. On disconnect the session is removed and the room is told

    Error Handling:
        - Invalid JSON, non-object frames, unknown events: dropped, no reply
        - Transport errors: treated as a disconnect
    """
    conn_id = await state.connection_manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Dropped invalid JSON from %s", conn_id)
                continue

            if not isinstance(frame, dict):
                logger.debug("Dropped non-object frame from %s", conn_id)
                continue

            await state.session_handler.handle_event(conn_id, frame.get("event"), frame.get("data"))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error on %s: %s", conn_id, e)
    finally:
        await state.session_handler.disconnect(conn_id)
