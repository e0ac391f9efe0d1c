"""Split the controller's text stream into replies and events.

The protocol has no length prefix and no message ids. A reply is whatever
accumulated since the last reply once a chunk brings the ``<END``
terminator into the buffer; the whole buffer is handed out and cleared, so
a reply may carry leftovers of an earlier truncated exchange.

Events are detected per received chunk and never consume the buffer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import RailroadProtocolError
from .protocol import EVENT_MARKER, REPLY_TERMINATOR, parse_event_lines

DEFAULT_MAX_BUFFER_SIZE = 64 * 1024


@dataclass(slots=True)
class FramedChunk:
    """What one received chunk produced."""

    reply: str | None = None
    events: list[str] = field(default_factory=list)


class ReplyFramer:
    """Accumulate received text until a reply terminator shows up."""

    def __init__(self, max_buffer_size: int | None = DEFAULT_MAX_BUFFER_SIZE) -> None:
        if max_buffer_size is not None and max_buffer_size <= 0:
            raise ValueError("max_buffer_size must be positive")
        self._max_buffer_size = max_buffer_size
        self._buffer = ""

    @property
    def buffered(self) -> str:
        """Text received since the last extracted reply."""
        return self._buffer

    def feed(self, chunk: str) -> FramedChunk:
        """Add a chunk and return any reply and events it completes.

        Raises:
            RailroadProtocolError: If the unterminated buffer grows past
                ``max_buffer_size``. The buffer is cleared first.
        """
        result = FramedChunk()

        if EVENT_MARKER in chunk:
            result.events = parse_event_lines(chunk)

        self._buffer += chunk
        if REPLY_TERMINATOR in self._buffer:
            result.reply = self._buffer
            self._buffer = ""
        elif (
            self._max_buffer_size is not None
            and len(self._buffer) > self._max_buffer_size
        ):
            size = len(self._buffer)
            self._buffer = ""
            raise RailroadProtocolError(
                f"Receive buffer exceeded {self._max_buffer_size} characters "
                f"without a reply terminator ({size} buffered)"
            )

        return result

    def reset(self) -> None:
        """Drop any partially received reply."""
        self._buffer = ""
