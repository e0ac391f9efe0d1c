"""Pytest configuration and fixtures for railroad_remote tests."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from unittest.mock import patch

import pytest

from railroad_remote.errors import RailroadConnectionError
from railroad_remote.session import RailroadSession
from railroad_remote.transport.tcp_client import (
    RailroadTcpMessage,
    RailroadTcpMessageType,
)


class FakeTcpClient:
    """Stand-in for RailroadTcpClient driven by a FakeControllerPeer."""

    def __init__(self, peer: FakeControllerPeer, *, read_size: int = 1024) -> None:
        self._peer = peer
        self._inbox: asyncio.Queue[RailroadTcpMessage] = asyncio.Queue()
        self.read_size = read_size
        self.closed = False

    async def connect(self, host: str, port: int, *, timeout: float = 5.0) -> None:
        self._peer.connect_attempts += 1
        if self._peer.refuse_connections > 0:
            self._peer.refuse_connections -= 1
            raise RailroadConnectionError("Connection refused")
        self._peer.clients.append(self)

    async def close(self) -> None:
        if self._peer.close_gate is not None:
            await self._peer.close_gate.wait()
        if not self.closed:
            self.closed = True
            self.hang_up()

    async def send_line(self, command: str) -> None:
        if self._peer.fail_writes:
            raise RailroadConnectionError("Broken pipe")
        self._peer.sent.append(command)
        for chunk in self._peer.respond(command):
            self.push(chunk)

    def push(self, chunk: str) -> None:
        """Deliver a chunk as if the controller had sent it."""
        self._inbox.put_nowait(RailroadTcpMessage(RailroadTcpMessageType.TEXT, chunk))

    def hang_up(self) -> None:
        """Simulate the controller closing the connection."""
        self._inbox.put_nowait(RailroadTcpMessage(RailroadTcpMessageType.CLOSED))

    def __aiter__(self) -> AsyncIterator[RailroadTcpMessage]:
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[RailroadTcpMessage]:
        while True:
            msg = await self._inbox.get()
            yield msg
            if msg.type is not RailroadTcpMessageType.TEXT:
                return


class FakeControllerPeer:
    """Scriptable controller behind every FakeTcpClient the session opens.

    Commands listed in ``replies`` answer with their chunks (an empty list
    never answers). Anything else gets a bare OK reply unless
    ``auto_reply`` is off.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.replies: dict[str, list[str]] = {}
        self.auto_reply = True
        self.refuse_connections = 0
        self.fail_writes = False
        self.connect_attempts = 0
        self.clients: list[FakeTcpClient] = []
        self.close_gate: asyncio.Event | None = None

    @property
    def client(self) -> FakeTcpClient:
        return self.clients[-1]

    def respond(self, command: str) -> list[str]:
        key = command.strip()
        if key in self.replies:
            return self.replies[key]
        if self.auto_reply:
            return [f"<REPLY {key}>\n<END 0 (OK)>\n"]
        return []

    def client_factory(self, *args, **kwargs) -> FakeTcpClient:
        return FakeTcpClient(self, **kwargs)


@pytest.fixture
def peer() -> FakeControllerPeer:
    """Patch the session's TCP client with a fake controller."""
    fake = FakeControllerPeer()
    with patch(
        "railroad_remote.session.RailroadTcpClient", side_effect=fake.client_factory
    ):
        yield fake


@pytest.fixture
async def make_session(
    peer: FakeControllerPeer,
) -> AsyncIterator[Callable[..., RailroadSession]]:
    """Create sessions with short delays; all are closed after the test."""
    sessions: list[RailroadSession] = []

    def factory(**kwargs) -> RailroadSession:
        kwargs.setdefault("reconnect_delay", 0.01)
        kwargs.setdefault("request_timeout", 1.0)
        session = RailroadSession("192.168.0.27", **kwargs)
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        await session.close()


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate holds or fail after timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.001)
