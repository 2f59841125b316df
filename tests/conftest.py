"""Test configuration and fixtures."""
import asyncio
import os
import random
import tempfile

# Settings are read at import time; point uploads somewhere disposable first.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="chatrelay-uploads-"))

import pytest

from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.room_directory import RoomDirectory
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.session_handler import SessionProtocolHandler

FIXED_TS = 1_700_000_000_000


class FakeWebSocket:
    """Stands in for a starlette WebSocket; records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    def events(self, name=None):
        """(event, data) pairs received, optionally filtered by event name."""
        return [(f["event"], f["data"]) for f in self.sent if name is None or f["event"] == name]

    def clear(self):
        self.sent.clear()

    def last(self, name):
        frames = self.events(name)
        return frames[-1][1] if frames else None


class YieldingWebSocket(FakeWebSocket):
    """Gives the loop away 0-3 times per send, like a real socket under load."""

    def __init__(self, rng: random.Random):
        super().__init__()
        self.rng = rng

    async def send_json(self, data):
        for _ in range(self.rng.randint(0, 3)):
            await asyncio.sleep(0)
        await super().send_json(data)


class HangingWebSocket(FakeWebSocket):
    """A client that never reads: every send blocks until cancelled."""

    async def send_json(self, data):
        await asyncio.Event().wait()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def directory(registry):
    return RoomDirectory(registry)


@pytest.fixture
def manager(directory):
    return ConnectionManager(directory=directory)


@pytest.fixture
def handler(registry, directory, manager):
    return SessionProtocolHandler(
        registry=registry,
        directory=directory,
        manager=manager,
        clock=lambda: FIXED_TS,
    )


@pytest.fixture
def connect(manager):
    """Open a fake connection and return (conn_id, websocket)."""
    async def _connect(fail: bool = False, ws=None):
        ws = ws if ws is not None else FakeWebSocket(fail=fail)
        conn_id = await manager.connect(ws)
        return conn_id, ws
    return _connect
