"""TCP client wrapper for the railroad controller text protocol."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import RailroadConnectionError
from .tcp import open_tcp_connection

if TYPE_CHECKING:
    import asyncio
    from collections.abc import AsyncIterator

DEFAULT_READ_SIZE = 1024


class RailroadTcpMessageType(Enum):
    """Normalized stream message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class RailroadTcpMessage:
    """Normalized stream chunk."""

    type: RailroadTcpMessageType
    data: str | None = None


class RailroadTcpClient:
    """Wrapper around an asyncio TCP stream speaking newline-terminated commands."""

    def __init__(self, *, read_size: int = DEFAULT_READ_SIZE) -> None:
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_size = read_size

    async def connect(
        self,
        host: str,
        port: int,
        *,
        timeout: float = 5.0,
    ) -> None:
        """Connect to the controller."""
        self._reader, self._writer = await open_tcp_connection(
            host,
            port,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the stream."""
        writer = self._writer
        self._writer = None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    async def send_line(self, command: str) -> None:
        """Write one command, appending the newline terminator if missing."""
        if self._writer is None:
            raise RailroadConnectionError("TCP stream is not connected")
        if not command.endswith("\n"):
            command += "\n"
        try:
            self._writer.write(command.encode("utf-8"))
            await self._writer.drain()
        except OSError as err:
            raise RailroadConnectionError("Failed to write command") from err

    def __aiter__(self) -> AsyncIterator[RailroadTcpMessage]:
        if self._reader is None:
            raise RailroadConnectionError("TCP stream is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[RailroadTcpMessage]:
        if self._reader is None:
            raise RailroadConnectionError("TCP stream is not connected")

        # Multi-byte characters may straddle two reads.
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                data = await self._reader.read(self._read_size)
            except OSError:
                yield RailroadTcpMessage(type=RailroadTcpMessageType.ERROR)
                return

            if not data:
                # EOF: the peer closed gracefully.
                yield RailroadTcpMessage(type=RailroadTcpMessageType.CLOSED)
                return

            text = decoder.decode(data)
            if text:
                yield RailroadTcpMessage(RailroadTcpMessageType.TEXT, text)
