"""Tests for the asyncio client: typing debounce, join replay state, uploads."""
import asyncio
import json

import httpx
import pytest

from websockets.exceptions import InvalidHandshake

from chatrelay.client import chat_client
from chatrelay.client.chat_client import ChatClient, TypingDebouncer, TypingTracker, UploadError


class FakeConnection:
    def __init__(self):
        self.frames = []

    async def send(self, raw):
        self.frames.append(json.loads(raw))

    def events(self):
        return [f["event"] for f in self.frames]


@pytest.fixture
def client():
    c = ChatClient("http://localhost:4000", typing_delay=0.05)
    c.websocket = FakeConnection()
    return c


def test_ws_url_is_derived_from_base_url():
    assert ChatClient("http://localhost:4000/").ws_url == "ws://localhost:4000/ws"
    assert ChatClient("https://chat.example").ws_url == "wss://chat.example/ws"


class TestTyping:

    @pytest.mark.asyncio
    async def test_stop_typing_after_quiet_period(self):
        sent = []

        async def send(event):
            sent.append(event)

        debouncer = TypingDebouncer(send, delay=0.05)
        await debouncer.input()
        await debouncer.input()
        assert debouncer.active
        await asyncio.sleep(0.15)

        assert sent == ["typing", "typing", "stop-typing"]
        assert not debouncer.active

    @pytest.mark.asyncio
    async def test_sending_a_message_stops_typing_immediately(self, client):
        await client.join("alice", "lobby")
        await client.notify_typing()
        await client.send_message("hi")
        await asyncio.sleep(0.15)

        assert client.websocket.events() == ["join", "typing", "message", "stop-typing"]

    @pytest.mark.asyncio
    async def test_no_typing_before_join(self, client):
        await client.notify_typing()
        assert client.websocket.frames == []

    def test_tracker_describe(self):
        tracker = TypingTracker()
        assert tracker.describe() == ""
        tracker.add("bob")
        assert tracker.describe() == "bob is typing…"
        tracker.add("carol")
        tracker.add("bob")
        assert tracker.describe() == "bob, carol are typing…"
        tracker.retain(["alice", "carol"])
        assert tracker.describe() == "carol is typing…"


class TestSending:

    @pytest.mark.asyncio
    async def test_join_is_remembered_for_replay(self, client):
        assert await client.join("  alice ", " lobby ")

        assert (client.username, client.room) == ("alice", "lobby")
        assert client.websocket.frames == [{"event": "join", "data": {"username": "alice", "room": "lobby"}}]

    @pytest.mark.asyncio
    async def test_blank_input_is_not_sent(self, client):
        assert not await client.join(" ", "lobby")
        assert not await client.send_message("   ")
        assert client.websocket.frames == []

    @pytest.mark.asyncio
    async def test_emit_without_connection(self):
        assert not await ChatClient().emit("typing")


class TestDispatch:

    @pytest.mark.asyncio
    async def test_dispatch_tracks_typing_and_forwards(self, client):
        received = []

        async def on_event(event, data):
            received.append((event, data))

        await client.dispatch(json.dumps({"event": "typing", "data": {"username": "bob"}}), on_event)
        assert client.typing_users.users == {"bob"}

        await client.dispatch(json.dumps({"event": "room-users", "data": ["alice"]}), on_event)
        assert client.typing_users.users == set()

        await client.dispatch("garbage", on_event)
        assert [event for event, _ in received] == ["typing", "room-users"]


class TestUpload:

    @pytest.mark.asyncio
    async def test_share_file_uploads_then_announces(self, client, tmp_path):
        path = tmp_path / "cat.png"
        path.write_bytes(b"\x89PNG")

        def respond(request):
            assert request.url.path == "/upload"
            assert b'name="media"; filename="cat.png"' in request.read()
            return httpx.Response(200, json={"url": "/uploads/1-ab.png", "mimetype": "image/png", "name": "cat.png"})

        client.transport = httpx.MockTransport(respond)
        result = await client.share_file(str(path))

        assert result.url == "/uploads/1-ab.png"
        assert client.websocket.frames == [
            {"event": "media", "data": {"url": "/uploads/1-ab.png", "mimetype": "image/png"}},
        ]

    @pytest.mark.asyncio
    async def test_rejection_raises_with_server_message(self, client, tmp_path):
        path = tmp_path / "big.png"
        path.write_bytes(b"0")
        client.transport = httpx.MockTransport(
            lambda request: httpx.Response(413, json={"error": "File too large (max 5MB)"})
        )

        with pytest.raises(UploadError) as exc:
            await client.upload(str(path))

        assert exc.value.message == "File too large (max 5MB)"
        assert exc.value.status_code == 413
        assert client.websocket.frames == []


class TestReconnect:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        InvalidHandshake("server returned HTTP 503 during restart"),
        asyncio.TimeoutError(),
        ConnectionRefusedError("refused"),
    ])
    async def test_run_keeps_retrying_after_connect_failures(self, monkeypatch, error):
        client = ChatClient("http://localhost:4000", reconnect_delay=0)
        attempts = []

        def failing_connect(url):
            attempts.append(url)
            if len(attempts) == 3:
                client._closing = True
            raise error

        monkeypatch.setattr(chat_client.websockets, "connect", failing_connect)

        await asyncio.wait_for(client.run(lambda event, data: None), timeout=1)

        assert attempts == ["ws://localhost:4000/ws"] * 3
        assert client.websocket is None
