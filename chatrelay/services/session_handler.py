# chatrelay/services/session_handler.py

from __future__ import annotations

import itertools
import logging
import time
from urllib.parse import unquote
from typing import Any, Awaitable, Callable, Dict, Optional

from chatrelay.core.config import settings
from chatrelay.models.models import (
    ChatMessage,
    MediaMessage,
    Session,
    SystemNotice,
    TypingNotice,
)
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.room_directory import RoomDirectory

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def is_upload_url(url: Any) -> bool:
    """True for a path under the upload prefix with no dot segments, raw or percent-encoded."""
    if not isinstance(url, str) or not url.startswith(settings.UPLOAD_URL_PREFIX):
        return False
    path = unquote(url.split("?", 1)[0].split("#", 1)[0]).replace("\\", "/")
    return not any(segment in (".", "..") for segment in path.split("/"))


def clean_text(value: Any, limit: int) -> str:
    """Trim then truncate. Anything that is not a string cleans to ""."""
    if not isinstance(value, str):
        return ""
    return value.strip()[:limit]


# ============================================================================
# SESSION PROTOCOL HANDLER
# ============================================================================

class SessionProtocolHandler:
    """
    Per-connection state machine for the realtime protocol.

    States:
        Unjoined  - socket accepted, no session in the registry
        Joined    - registry holds a Session for the connection
        Closed    - disconnect() ran, session removed

    Client -> Server events:
        join         {"username": str, "room": str}
        message      {"text": str}
        media        {"url": "/uploads/...", "mimetype": str}
        typing       (no payload)
        stop-typing  (no payload)

    Invalid input is dropped without any reply. Empty names, empty messages,
    events sent before join and media URLs outside the upload prefix all
    return early and emit nothing. Clients fire and forget; an error event
    here would be protocol chatter they never read.

    Handlers never await. Registry mutation, roster computation and the
    enqueueing of every resulting frame happen in one step, so no other event
    can interleave with a half-applied join or leave, and the last roster a
    client receives always matches the registry.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: RoomDirectory,
        manager: ConnectionManager,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.manager = manager
        self.clock = clock
        self.message_counter: int = 0
        self._seq = itertools.count(1)
        self._handlers: Dict[str, Callable[[str, Any], Awaitable[None]]] = {
            "join": self.join,
            "message": self.message,
            "media": self.media,
            "typing": self.typing,
            "stop-typing": self.stop_typing,
        }

    async def handle_event(self, conn_id: str, event: Any, data: Any = None) -> None:
        """Route one inbound event. Unknown events are dropped."""
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.debug("Dropped unknown event %r from %s", event, conn_id)
            return
        await handler(conn_id, data)

    def _message_id(self, conn_id: str, timestamp: int) -> str:
        # The counter keeps ids distinct for sends within the same millisecond.
        return f"{conn_id}-{timestamp}-{next(self._seq)}"

    def _session_for(self, conn_id: str, event: str) -> Optional[Session]:
        session = self.registry.get(conn_id)
        if session is None:
            logger.debug("Dropped %s from %s: not joined", event, conn_id)
        return session

    # ------------------------------------------------------------------
    # join
    # ------------------------------------------------------------------
    async def join(self, conn_id: str, data: Any) -> None:
        """
        Bind (username, room) to the connection.

        Both fields are trimmed and cut to 30 characters. A repeat join
        replaces the previous session outright. The old room gets a fresh
        roster but no "left" notice.
        """
        if not isinstance(data, dict):
            logger.debug("Dropped join from %s: payload is not an object", conn_id)
            return

        username = clean_text(data.get("username"), settings.MAX_NAME_LENGTH)
        room = clean_text(data.get("room"), settings.MAX_NAME_LENGTH)
        if not username or not room:
            logger.debug("Dropped join from %s: empty username or room", conn_id)
            return

        if not self.manager.is_connected(conn_id):
            return  # Connection already closed

        previous = self.registry.get(conn_id)
        self.registry.set(conn_id, Session(username=username, room=room))

        notice = SystemNotice(message=f"{username} joined the room", timestamp=self.clock())
        roster = self.directory.members_of(room)
        old_roster = None
        if previous is not None and previous.room != room:
            old_roster = self.directory.members_of(previous.room)

        logger.info("→ %s joined '%s' (%d members)", username, room, len(roster))

        self.manager.broadcast_to_room(room, "system", notice, exclude=conn_id)
        self.manager.broadcast_to_room(room, "room-users", roster)
        if old_roster is not None:
            self.manager.broadcast_to_room(previous.room, "room-users", old_roster)

    # ------------------------------------------------------------------
    # message / media
    # ------------------------------------------------------------------
    async def message(self, conn_id: str, data: Any) -> None:
        """Relay a text message to the whole room, sender included."""
        session = self._session_for(conn_id, "message")
        if session is None:
            return

        text = clean_text(data.get("text") if isinstance(data, dict) else None,
                          settings.MAX_MESSAGE_LENGTH)
        if not text:
            logger.debug("Dropped message from %s: empty text", conn_id)
            return

        timestamp = self.clock()
        chat = ChatMessage(
            id=self._message_id(conn_id, timestamp),
            username=session.username,
            text=text,
            timestamp=timestamp,
        )
        self.message_counter += 1
        self.manager.broadcast_to_room(session.room, "message", chat)

    async def media(self, conn_id: str, data: Any) -> None:
        """
        Announce an uploaded file to the whole room, sender included.

        Only URLs under the upload prefix are relayed. This is the only
        server-side check that stops clients announcing external or
        arbitrary resources.
        """
        session = self._session_for(conn_id, "media")
        if session is None:
            return
        if not isinstance(data, dict):
            return

        url = data.get("url")
        if not is_upload_url(url):
            logger.debug("Dropped media from %s: url outside %s", conn_id, settings.UPLOAD_URL_PREFIX)
            return

        mimetype = data.get("mimetype")
        if not isinstance(mimetype, str):
            mimetype = ""

        timestamp = self.clock()
        media = MediaMessage(
            id=self._message_id(conn_id, timestamp),
            username=session.username,
            url=url,
            mimetype=mimetype,
            timestamp=timestamp,
        )
        self.message_counter += 1
        self.manager.broadcast_to_room(session.room, "media", media)

    # ------------------------------------------------------------------
    # typing
    # ------------------------------------------------------------------
    async def typing(self, conn_id: str, data: Any = None) -> None:
        session = self._session_for(conn_id, "typing")
        if session is None:
            return
        self.manager.broadcast_to_room(
            session.room, "typing", TypingNotice(username=session.username), exclude=conn_id
        )

    async def stop_typing(self, conn_id: str, data: Any = None) -> None:
        session = self._session_for(conn_id, "stop-typing")
        if session is None:
            return
        self.manager.broadcast_to_room(
            session.room, "stop-typing", TypingNotice(username=session.username), exclude=conn_id
        )

    # ------------------------------------------------------------------
    # disconnect
    # ------------------------------------------------------------------
    async def disconnect(self, conn_id: str) -> None:
        """
        Tear down a connection.

        Cleanup:
            1. Forget the socket
            2. Remove the session, if any
            3. Tell the rest of the room and push the new roster

        A connection that never joined leaves silently.
        """
        self.manager.disconnect(conn_id)
        session = self.registry.delete(conn_id)
        if session is None:
            return

        notice = SystemNotice(message=f"{session.username} left the room", timestamp=self.clock())
        roster = self.directory.members_of(session.room)

        logger.info("← %s left '%s' (%d members)", session.username, session.room, len(roster))

        self.manager.broadcast_to_room(session.room, "system", notice, exclude=conn_id)
        self.manager.broadcast_to_room(session.room, "room-users", roster)
