"""Client error types for railroad command server interactions."""

from __future__ import annotations


class RailroadClientError(Exception):
    """Base error for railroad client failures."""


class RailroadTimeout(RailroadClientError):
    """Timeout while communicating with the controller."""


class RailroadConnectionError(RailroadClientError):
    """Network connection to the controller failed."""


class RailroadProtocolError(RailroadClientError):
    """The controller sent data the client cannot frame."""


class RailroadSessionClosed(RailroadClientError):
    """The session was closed before the request could complete."""
