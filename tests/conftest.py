"""Shared fixtures for wsrelay tests."""

from __future__ import annotations

import asyncio

import pytest

from wsrelay.relay.config import config

TOKEN = "+Ud0vzqdpt1YeXIMGZsjXaVwJiyLQgW7DNc6UxuwjtSAhCtzbeSnO/EERdE/Vf/o"


class FakeFront:
    """In-memory stand-in for an un-accepted Starlette WebSocket."""

    def __init__(self):
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[bytes] = []
        self.accepted = False
        self.close_code: int | None = None

    async def accept(self):
        self.accepted = True

    async def receive(self):
        return await self.inbound.get()

    async def send_bytes(self, data: bytes):
        if self.close_code is not None:
            raise RuntimeError("Cannot send after close")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.close_code = code

    def push_bytes(self, data: bytes):
        self.inbound.put_nowait({"type": "websocket.receive", "bytes": data})

    def push_text(self, text: str):
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self, code: int = 1000):
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})


class RecordingWriter:
    """StreamWriter stand-in that records every write call."""

    def __init__(
        self, loopback: asyncio.StreamReader | None = None, fail: bool = False
    ):
        self.writes: list[bytes] = []
        self.closed = False
        self.loopback = loopback
        self.fail = fail

    def write(self, data: bytes):
        self.writes.append(bytes(data))
        if self.loopback is not None:
            self.loopback.feed_data(data)

    async def drain(self):
        if self.fail:
            raise ConnectionResetError("Connection reset by peer")

    def close(self):
        self.closed = True

    def is_closing(self):
        return self.closed

    async def wait_closed(self):
        pass

    def get_extra_info(self, name, default=None):
        return default


class SpyOpener:
    """Opener that records calls and hands out in-memory back streams."""

    def __init__(
        self,
        preload: bytes = b"",
        eof: bool = False,
        loopback: bool = False,
        error: Exception | None = None,
    ):
        self.calls: list[tuple[str, int]] = []
        self.writers: list[RecordingWriter] = []
        self.preload = preload
        self.eof = eof
        self.loopback = loopback
        self.error = error

    async def __call__(self, host: str, port: int):
        self.calls.append((host, port))
        if self.error is not None:
            raise self.error

        reader = asyncio.StreamReader()
        if self.preload:
            reader.feed_data(self.preload)
        if self.eof:
            reader.feed_eof()
        writer = RecordingWriter(loopback=reader if self.loopback else None)
        self.writers.append(writer)
        return reader, writer


@pytest.fixture
def relay_token(monkeypatch):
    """Configure the relay secret for the duration of a test."""
    monkeypatch.setattr(config, "TOKEN", TOKEN)
    monkeypatch.setattr(config, "CONNECT_TIMEOUT", 2.0)
    return TOKEN
