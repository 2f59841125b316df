# chatrelay/client/chat_client.py

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import os
from typing import Any, Awaitable, Callable, List, Optional, Set

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from chatrelay.models.models import UploadResult

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Any], Awaitable[None]]


class UploadError(Exception):
    """The server refused an upload. `message` is the server's safe error text."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ============================================================================
# TYPING STATE
# ============================================================================

class TypingDebouncer:
    """
    Emits "typing" on every keystroke and "stop-typing" once input goes quiet.

    Each call to input() re-arms a timer; when it fires after `delay`
    seconds without further input, "stop-typing" is sent. stop() sends it
    straight away (used when a message is sent).
    """

    def __init__(self, send: Callable[[str], Awaitable[Any]], delay: float = 2.0) -> None:
        self._send = send
        self.delay = delay
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def active(self) -> bool:
        return self._timer is not None

    async def input(self) -> None:
        await self._send("typing")
        self._cancel()
        self._timer = asyncio.get_running_loop().call_later(self.delay, self._expire)

    async def stop(self) -> None:
        self._cancel()
        await self._send("stop-typing")

    def _expire(self) -> None:
        self._timer = None
        self._pending = asyncio.ensure_future(self._send("stop-typing"))

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class TypingTracker:
    """Who else in the room is typing right now, as seen by this client."""

    def __init__(self) -> None:
        self.users: Set[str] = set()
        self._order: List[str] = []

    def add(self, username: str) -> None:
        if username not in self.users:
            self.users.add(username)
            self._order.append(username)

    def remove(self, username: str) -> None:
        if username in self.users:
            self.users.discard(username)
            self._order.remove(username)

    def retain(self, roster: List[str]) -> None:
        """Forget typists that are no longer in the room."""
        for username in list(self._order):
            if username not in roster:
                self.remove(username)

    def clear(self) -> None:
        self.users.clear()
        self._order.clear()

    def describe(self) -> str:
        if not self._order:
            return ""
        verb = "is" if len(self._order) == 1 else "are"
        return f"{', '.join(self._order)} {verb} typing…"


# ============================================================================
# CHAT CLIENT
# ============================================================================

class ChatClient:
    """
    Asyncio client for the relay.

    The server forgets everything about a connection when it drops, so the
    client remembers its last join and replays it after every reconnect.
    Expect the room to see "<you> left the room" / "<you> joined the room"
    around each reconnect.

    Usage:
        client = ChatClient("http://localhost:4000")

        async def on_event(event, data):
            print(event, data)

        task = asyncio.create_task(client.run(on_event))
        await client.join("alice", "lobby")
        await client.send_message("hi")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:4000",
        reconnect_delay: float = 1.0,
        typing_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # http:// -> ws://, https:// -> wss://
        self.ws_url = "ws" + self.base_url[4:] + "/ws" if self.base_url.startswith("http") else self.base_url + "/ws"
        self.reconnect_delay = reconnect_delay
        self.transport = transport

        self.websocket: Any = None
        self.username: Optional[str] = None
        self.room: Optional[str] = None
        self.typing = TypingDebouncer(self.emit, typing_delay)
        self.typing_users = TypingTracker()
        self._closing = False

    async def emit(self, event: str, data: Any = None) -> bool:
        """Send one frame. Returns False when there is no live connection."""
        if self.websocket is None:
            return False
        frame = {"event": event}
        if data is not None:
            frame["data"] = data
        try:
            await self.websocket.send(json.dumps(frame))
        except ConnectionClosed:
            logger.debug("Dropped %s: connection closed", event)
            return False
        return True

    async def join(self, username: str, room: str) -> bool:
        username, room = username.strip(), room.strip()
        if not username or not room:
            return False
        self.username, self.room = username, room
        self.typing_users.clear()
        return await self.emit("join", {"username": username, "room": room})

    async def send_message(self, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        sent = await self.emit("message", {"text": text})
        await self.typing.stop()
        return sent

    async def notify_typing(self) -> None:
        if self.room is None:
            return
        await self.typing.input()

    async def send_media(self, url: str, mimetype: str) -> bool:
        return await self.emit("media", {"url": url, "mimetype": mimetype})

    async def upload(self, path: str, mimetype: Optional[str] = None) -> UploadResult:
        """
        POST a file to /upload.

        Raises:
            UploadError: with the server's error message on rejection
        """
        mimetype = mimetype or mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            files = {"media": (os.path.basename(path), f.read(), mimetype)}

        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport) as http:
            response = await http.post("/upload", files=files)

        if response.status_code != 200:
            try:
                message = response.json().get("error", "Upload failed")
            except ValueError:
                message = "Upload failed"
            raise UploadError(message, response.status_code)
        return UploadResult(**response.json())

    async def share_file(self, path: str, mimetype: Optional[str] = None) -> UploadResult:
        """Upload a file, then announce it to the room."""
        result = await self.upload(path, mimetype)
        await self.send_media(result.url, result.mimetype)
        return result

    async def dispatch(self, raw: str, on_event: EventHandler) -> None:
        """Decode one server frame, update typing state, and pass it on."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed frame: %r", raw[:200])
            return
        if not isinstance(frame, dict):
            return

        event, data = frame.get("event"), frame.get("data")
        if event == "typing" and isinstance(data, dict):
            self.typing_users.add(data.get("username", ""))
        elif event == "stop-typing" and isinstance(data, dict):
            self.typing_users.remove(data.get("username", ""))
        elif event == "room-users" and isinstance(data, list):
            self.typing_users.retain(data)
        await on_event(event, data)

    async def run(self, on_event: EventHandler) -> None:
        """Connect, replay the last join on every (re)connect, and pump events until close()."""
        self._closing = False
        while not self._closing:
            try:
                async with websockets.connect(self.ws_url) as ws:
                    self.websocket = ws
                    logger.info("Connected to %s", self.ws_url)
                    if self.username and self.room:
                        await self.emit("join", {"username": self.username, "room": self.room})
                    async for raw in ws:
                        await self.dispatch(raw, on_event)
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                # Refused, reset, failed handshake (e.g. 503 mid-restart) or timed out
                logger.warning("Connection lost: %r. Reconnecting…", e)
            finally:
                self.websocket = None

            if not self._closing:
                await asyncio.sleep(self.reconnect_delay)

    async def close(self) -> None:
        self._closing = True
        if self.websocket is not None:
            await self.websocket.close()
