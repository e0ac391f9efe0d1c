"""Session manager for the railroad command server connection.

This module owns the TCP link to the controller. It handles:
- Connection management with constant-delay reconnect
- Framing the received stream into replies and events
- Serializing requests so at most one reply is awaited at a time
- Request timeouts
- Event routing

The protocol has no message ids: a reply is matched to the request that
is currently pending purely by arrival order. Requests queue FIFO behind
an asyncio lock, so a second caller waits instead of stealing the slot.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .errors import (
    RailroadClientError,
    RailroadProtocolError,
    RailroadSessionClosed,
)
from .framing import DEFAULT_MAX_BUFFER_SIZE, ReplyFramer
from .protocol import DEFAULT_PORT
from .transport.tcp_client import (
    DEFAULT_READ_SIZE,
    RailroadTcpClient,
    RailroadTcpMessageType,
)

_LOGGER = logging.getLogger(__name__)

STATE_DISCONNECTED = "disconnected"
STATE_CONNECTING = "connecting"
STATE_READY = "ready"


@dataclass(slots=True)
class _PendingRequest:
    """The single request whose reply is being awaited."""

    command: str
    future: asyncio.Future[str | None]
    sent_at: float


class RailroadSession:
    """Single-connection session to a railroad controller.

    Usage:
        session = RailroadSession("192.168.0.27")
        session.on_event(my_event_handler)
        await session.connect()
        reply = await session.send(encode_list_trains())
        await session.close()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        connect_timeout: float = 5.0,
        reconnect_delay: float = 5.0,
        request_timeout: float | None = 10.0,
        max_buffer_size: int | None = DEFAULT_MAX_BUFFER_SIZE,
        read_size: int = DEFAULT_READ_SIZE,
    ):
        """Initialize session.

        Args:
            host: Controller hostname or IP
            port: Controller port
            connect_timeout: Connection attempt timeout (seconds)
            reconnect_delay: Fixed delay between reconnect attempts (seconds)
            request_timeout: Default wait for a reply (seconds), None waits forever
            max_buffer_size: Cap on unterminated reply text, None disables
            read_size: Maximum bytes per socket read
        """
        self.host = host
        self.port = port

        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._request_timeout = request_timeout
        self._read_size = read_size

        # Connection state
        self._client: RailroadTcpClient | None = None
        self._connection_state: str = STATE_DISCONNECTED
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._retry_attempts = 0
        self._shutdown_requested = False
        self._connect_lock = asyncio.Lock()

        # Request state
        self._framer = ReplyFramer(max_buffer_size)
        self._request_lock = asyncio.Lock()
        self._pending: _PendingRequest | None = None

        # Callbacks
        self._event_callback: Callable[[str], None] | None = None
        self._connection_state_callback: Callable[[str], None] | None = None

    @property
    def _tag(self) -> str:
        return f"{self.host}:{self.port}"

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Open the connection and start the receive loop.

        On failure a reconnect is scheduled after ``reconnect_delay``.

        Returns:
            True if the session is ready, False otherwise
        """
        if self._shutdown_requested:
            _LOGGER.debug("[%s] Connection aborted: session closed", self._tag)
            return False

        async with self._connect_lock:
            if self._shutdown_requested:
                return False
            if self.is_connected:
                return True

            # A direct connect supersedes a scheduled one. When running inside
            # the reconnect task, release the slot so a failure can reschedule.
            reconnect_task = self._reconnect_task
            if reconnect_task is not None:
                if reconnect_task is not asyncio.current_task():
                    reconnect_task.cancel()
                self._reconnect_task = None

            self._set_state(STATE_CONNECTING)
            _LOGGER.info(
                "[%s] Connecting (attempt #%d)", self._tag, self._retry_attempts + 1
            )

            client = RailroadTcpClient(read_size=self._read_size)
            try:
                await client.connect(
                    self.host, self.port, timeout=self._connect_timeout
                )
            except RailroadClientError as err:
                _LOGGER.warning("[%s] Connection failed: %s", self._tag, err)
                self._set_state(STATE_DISCONNECTED)
                self._handle_connection_failure()
                return False

            if self._shutdown_requested:
                await client.close()
                return False

            self._client = client
            self._framer.reset()
            self._retry_attempts = 0
            self._listen_task = asyncio.create_task(self._listen(client))
            self._set_state(STATE_READY)
            _LOGGER.info("[%s] Connected", self._tag)
            return True

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        if self._shutdown_requested:
            return
        _LOGGER.info("[%s] Closing session", self._tag)
        self._shutdown_requested = True

        if self._reconnect_task:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        # The waiting caller sees the request abandoned, not answered.
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(
                RailroadSessionClosed("Session closed before a reply arrived")
            )

        await self._drop_connection()
        self._set_state(STATE_DISCONNECTED)

    @property
    def is_connected(self) -> bool:
        """Check if the session has a live connection."""
        return self._connection_state == STATE_READY

    @property
    def connection_state(self) -> str:
        """Get current connection state."""
        return self._connection_state

    @property
    def has_pending_request(self) -> bool:
        """Check if a reply is currently awaited."""
        return self._pending is not None

    # -------------------------------------------------------------------------
    # Public API: Callbacks
    # -------------------------------------------------------------------------

    def on_event(self, callback: Callable[[str], None]) -> None:
        """Register callback for unsolicited controller events.

        Callback receives the event line without its angle brackets,
        e.g. "EVENT 1000".
        """
        self._event_callback = callback

    def on_connection_state_changed(self, callback: Callable[[str], None]) -> None:
        """Register callback for connection state changes.

        Callback receives state: "connecting", "ready", "disconnected"
        """
        self._connection_state_callback = callback

    # -------------------------------------------------------------------------
    # Public API: Requests
    # -------------------------------------------------------------------------

    async def send(self, command: str, *, timeout: float | None = None) -> str | None:
        """Send a command and wait for its reply.

        Concurrent callers are queued in arrival order. When the session is
        not connected a connection attempt is made first.

        Args:
            command: Command line, with or without the trailing newline
            timeout: Reply wait override (seconds), defaults to request_timeout

        Returns:
            The full reply text, or None if the command failed, timed out
            or the connection dropped

        Raises:
            RailroadSessionClosed: If the session is or gets closed
        """
        if self._shutdown_requested:
            raise RailroadSessionClosed("Session is closed")

        async with self._request_lock:
            if self._shutdown_requested:
                raise RailroadSessionClosed("Session is closed")

            if not self.is_connected:
                await self.connect()
                if self._shutdown_requested:
                    raise RailroadSessionClosed("Session is closed")
            client = self._client
            if not self.is_connected or client is None:
                _LOGGER.warning(
                    "[%s] Cannot send %r: not connected", self._tag, command.strip()
                )
                return None

            pending = _PendingRequest(
                command=command,
                future=asyncio.get_running_loop().create_future(),
                sent_at=time.monotonic(),
            )
            self._pending = pending

            try:
                try:
                    await client.send_line(command)
                except RailroadClientError as err:
                    if pending.future.done():
                        # Closed while writing.
                        return await pending.future
                    _LOGGER.warning("[%s] Send failed: %s", self._tag, err)
                    self._resolve_pending(None)
                    await self._drop_connection()
                    return None

                _LOGGER.debug("[%s] Sent %r", self._tag, command.strip())
                return await self._wait_for_reply(pending, timeout)
            finally:
                if self._pending is pending:
                    self._pending = None

    async def _wait_for_reply(
        self, pending: _PendingRequest, timeout: float | None
    ) -> str | None:
        if timeout is None:
            timeout = self._request_timeout
        try:
            if timeout is None:
                return await pending.future
            return await asyncio.wait_for(pending.future, timeout=timeout)
        except TimeoutError:
            _LOGGER.warning(
                "[%s] No reply to %r after %.1fs",
                self._tag,
                pending.command.strip(),
                time.monotonic() - pending.sent_at,
            )
            # A late terminator must not complete the next request's reply.
            self._framer.reset()
            return None

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: str) -> None:
        """Update connection state and notify callback."""
        if self._connection_state != state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self._tag, self._connection_state, state
            )
            self._connection_state = state
            if self._connection_state_callback:
                try:
                    self._connection_state_callback(state)
                except Exception as err:
                    _LOGGER.exception(
                        "[%s] Connection state callback error: %s", self._tag, err
                    )

    def _handle_connection_failure(self) -> None:
        """Schedule a reconnection attempt after the fixed delay."""
        if self._shutdown_requested or self._reconnect_task:
            return

        self._retry_attempts += 1
        _LOGGER.info(
            "[%s] Reconnecting in %.1fs (attempt %d)",
            self._tag,
            self._reconnect_delay,
            self._retry_attempts,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after_delay(self._reconnect_delay)
        )

    async def _reconnect_after_delay(self, delay: float) -> None:
        """Reconnect after delay."""
        try:
            await asyncio.sleep(delay)
            await self.connect()
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self._tag)
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    async def _drop_connection(self) -> None:
        """Tear down the current link and fail the reply being awaited."""
        listen_task = self._listen_task
        self._listen_task = None
        if listen_task is asyncio.current_task():
            listen_task = None
        elif listen_task is not None:
            listen_task.cancel()

        # Detach before the first await so concurrent senders reconnect.
        client = self._client
        self._client = None
        self._framer.reset()
        self._resolve_pending(None)
        self._set_state(STATE_DISCONNECTED)

        if listen_task is not None:
            try:
                await listen_task
            except asyncio.CancelledError:
                pass

        if client is not None:
            try:
                await asyncio.wait_for(client.close(), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] Connection close timed out", self._tag)

    def _resolve_pending(self, reply: str | None) -> bool:
        """Complete the pending request once and free the slot."""
        pending = self._pending
        if pending is None:
            return False
        self._pending = None
        if pending.future.done():
            return False
        pending.future.set_result(reply)
        return True

    # -------------------------------------------------------------------------
    # Internal: Receive Loop
    # -------------------------------------------------------------------------

    async def _listen(self, client: RailroadTcpClient) -> None:
        """Read chunks from the controller until the link fails."""
        chunk_count = 0
        reconnect_required = False

        try:
            async for msg in client:
                if msg.type == RailroadTcpMessageType.TEXT:
                    chunk_count += 1
                    self._handle_chunk(msg.data or "")

                elif msg.type == RailroadTcpMessageType.CLOSED:
                    _LOGGER.info("[%s] Connection closed by controller", self._tag)
                    reconnect_required = True
                    break

                elif msg.type == RailroadTcpMessageType.ERROR:
                    _LOGGER.warning("[%s] Connection error", self._tag)
                    reconnect_required = True
                    break

        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d chunks)", self._tag, chunk_count
            )
            raise
        except RailroadProtocolError as err:
            _LOGGER.warning("[%s] Protocol error: %s", self._tag, err)
            reconnect_required = True
        except RailroadClientError as err:
            _LOGGER.warning("[%s] Client error: %s", self._tag, err)
            reconnect_required = True
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected error: %s", self._tag, err)
            reconnect_required = True
        finally:
            if reconnect_required and not self._shutdown_requested:
                if self._client is client:
                    await self._drop_connection()
                if not self.is_connected:
                    self._handle_connection_failure()

    def _handle_chunk(self, chunk: str) -> None:
        """Feed one chunk through the framer and route its output."""
        framed = self._framer.feed(chunk)

        for event in framed.events:
            self._handle_event(event)

        if framed.reply is not None:
            _LOGGER.debug("[%s] Reply: %r", self._tag, framed.reply)
            if not self._resolve_pending(framed.reply):
                _LOGGER.debug("[%s] Reply with no pending request dropped", self._tag)

    def _handle_event(self, event: str) -> None:
        """Hand an event to the registered callback."""
        _LOGGER.info("[%s] Received EVENT: %s", self._tag, event)
        if self._event_callback:
            try:
                self._event_callback(event)
            except Exception as err:
                _LOGGER.exception("[%s] Event callback error: %s", self._tag, err)
