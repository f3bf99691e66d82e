"""
Custom exceptions for the RTM client.
"""

from typing import Optional

EXCERPT_RADIUS = 40


class RtmError(Exception):
    """Base exception for all RTM client errors."""
    pass


class TransportError(RtmError):
    """Network or socket level I/O failure."""
    pass


class ConnectionLostError(TransportError):
    """WebSocket connection was lost."""
    pass


class ConnectionClosedError(RtmError):
    """The connection was shut down explicitly."""
    pass


class MaxReconnectAttemptsError(RtmError):
    """Maximum reconnection attempts exceeded."""
    pass


class NegotiationError(RtmError):
    """Handshake failed or the service answered with ok=false."""

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.body = body


class ProtocolDecodeError(RtmError):
    """
    A payload could not be decoded.

    Keeps the raw payload and, when known, the character offset where
    decoding failed so that a short excerpt can be logged.
    """

    def __init__(self, message: str, payload: str = "", offset: Optional[int] = None):
        super().__init__(message)
        self.payload = payload
        self.offset = offset

    @property
    def excerpt(self) -> str:
        """Up to EXCERPT_RADIUS characters either side of the failure offset."""
        if self.offset is None:
            return self.payload[: EXCERPT_RADIUS * 2]

        start = max(0, self.offset - EXCERPT_RADIUS)
        return self.payload[start : self.offset + EXCERPT_RADIUS]
