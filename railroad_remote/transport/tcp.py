"""TCP stream helpers for railroad controller transport."""

from __future__ import annotations

import asyncio

from ..errors import RailroadConnectionError, RailroadTimeout


async def open_tcp_connection(
    host: str,
    port: int,
    *,
    timeout: float = 5.0,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a plain TCP stream to the controller.

    Args:
        host: Controller hostname or IP
        port: Controller port
        timeout: Connection timeout (seconds)
    """
    try:
        return await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise RailroadTimeout(f"Connection to {host}:{port} timed out") from err
    except OSError as err:
        raise RailroadConnectionError(f"Connection to {host}:{port} failed") from err
