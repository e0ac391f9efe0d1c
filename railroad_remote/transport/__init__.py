"""Transport layer for the railroad controller.

Components:
- tcp: TCP stream opening with typed errors
- tcp_client: command writing and normalized chunk iteration
"""

from .tcp import open_tcp_connection
from .tcp_client import (
    RailroadTcpClient,
    RailroadTcpMessage,
    RailroadTcpMessageType,
)

__all__ = [
    "RailroadTcpClient",
    "RailroadTcpMessage",
    "RailroadTcpMessageType",
    "open_tcp_connection",
]
