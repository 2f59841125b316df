# chatrelay/services/connection_manager.py

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional
from uuid import uuid4
from fastapi import WebSocket
from pydantic import BaseModel
import logging

from chatrelay.services.room_directory import RoomDirectory

logger = logging.getLogger(__name__)

# Frames a slow client may fall behind by before new ones are dropped for it
OUTBOX_SIZE = 256

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Owns the live WebSocket links and fans events out to rooms.

    Every accepted socket gets an opaque connection id, an outbound queue and
    one writer task draining that queue into the socket. Room membership is
    NOT tracked here: "who is in room X" is always asked of the RoomDirectory,
    which derives it from the ConnectionRegistry. Joining a room therefore
    needs no subscription bookkeeping in this class; writing the session is
    the subscription.

    Data Structures:
        connections: Maps conn_id -> WebSocket
        outboxes:    Maps conn_id -> asyncio.Queue of pending frames
        writers:     Maps conn_id -> writer task for that queue

    Frames:
        Every outbound frame is a JSON object {"event": <name>, "data": <payload>}.

    Delivery:
        send() and broadcast_to_room() only enqueue and never await, so the
        recipients and payload of one event are fixed in a single step and
        every client sees frames in event order. A slow or dead socket only
        delays its own queue. Best effort, at most once: a full queue drops
        the frame, a failed send is logged, nothing is retried.
    """

    def __init__(self, directory: RoomDirectory) -> None:
        """Initialize connection manager with empty socket tables."""
        self.connections: Dict[str, WebSocket] = {}
        self.outboxes: Dict[str, asyncio.Queue] = {}
        self.writers: Dict[str, asyncio.Task] = {}
        self.directory = directory

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept a new WebSocket connection and start its writer.

        Returns:
            str: The new connection id

        Note:
            The connection is not in any room yet. It must send a "join" event.
        """
        await websocket.accept()

        conn_id = uuid4().hex
        outbox: asyncio.Queue = asyncio.Queue(maxsize=OUTBOX_SIZE)
        self.connections[conn_id] = websocket
        self.outboxes[conn_id] = outbox
        self.writers[conn_id] = asyncio.create_task(self._writer(conn_id, websocket, outbox))

        logger.info("✓ Connection %s opened. Total: %d", conn_id, len(self.connections))
        return conn_id

    def disconnect(self, conn_id: str) -> None:
        """Forget a connection and stop its writer. Unknown ids are ignored."""
        self.outboxes.pop(conn_id, None)
        writer = self.writers.pop(conn_id, None)
        if writer is not None:
            writer.cancel()
        if self.connections.pop(conn_id, None) is not None:
            logger.info("✗ Connection %s closed. Total: %d", conn_id, len(self.connections))

    def is_connected(self, conn_id: str) -> bool:
        return conn_id in self.connections

    async def _writer(self, conn_id: str, websocket: WebSocket, outbox: asyncio.Queue) -> None:
        failed = False
        while True:
            frame = await outbox.get()
            try:
                if not failed:
                    await websocket.send_json(frame)
            except Exception as e:
                # The receive loop notices the dead socket and cleans up
                logger.warning("Send error to %s (%s): %s", conn_id, frame.get("event"), e)
                failed = True
            finally:
                outbox.task_done()

    async def drain(self, *conn_ids: str) -> None:
        """Wait until the given (default: all) connections have flushed their queues."""
        ids = conn_ids or tuple(self.outboxes)
        await asyncio.gather(*(self.outboxes[c].join() for c in ids if c in self.outboxes))

    def send(self, conn_id: str, event: str, payload: Any) -> bool:
        """
        Queue one event for one connection.

        Returns:
            True if the frame was queued, False if the connection is gone or
            its queue is full.
        """
        outbox = self.outboxes.get(conn_id)
        if outbox is None:
            return False

        if isinstance(payload, BaseModel):
            payload = payload.model_dump()

        try:
            outbox.put_nowait({"event": event, "data": payload})
        except asyncio.QueueFull:
            logger.warning("Dropped %s for %s: outbound queue full", event, conn_id)
            return False
        return True

    def broadcast_to_room(
        self,
        room: str,
        event: str,
        payload: Any,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Broadcast an event to every connection currently in a room.

        Args:
            room: Target room name
            event: Event name (e.g. "message", "system", "room-users")
            payload: JSON-serialisable data or a pydantic model
            exclude: Connection id to skip (usually the sender)

        Returns:
            int: Number of connections the event was queued for
        """
        recipients = [c for c in self.directory.connections_in(room) if c != exclude]
        if not recipients:
            logger.debug("[routing] Skipped %s: room=%s has no recipients", event, room)
            return 0

        if isinstance(payload, BaseModel):
            payload = payload.model_dump()

        logger.debug("📨 Broadcasting %s to room %s: %d clients", event, room, len(recipients))

        queued = 0
        for conn_id in recipients:
            if self.send(conn_id, event, payload):
                queued += 1
        return queued
