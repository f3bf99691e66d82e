"""
RTM websocket client with transparent reconnection.
"""

from rtmlink.rtm.chunking import split_message
from rtmlink.rtm.connection import Connection
from rtmlink.rtm.events import EventKind, classify
from rtmlink.rtm.exceptions import (
    ConnectionClosedError,
    ConnectionLostError,
    MaxReconnectAttemptsError,
    NegotiationError,
    ProtocolDecodeError,
    RtmError,
    TransportError,
)
from rtmlink.rtm.gateway import Gateway, connect
from rtmlink.rtm.http import negotiate, parse_handshake
from rtmlink.rtm.models import Channel, HandshakeResult, OutboundEvent, User, UserProfile
from rtmlink.rtm.processor import EventProcessor
from rtmlink.rtm.state import SharedState

__all__ = [
    "Gateway",
    "connect",
    "Connection",
    "EventProcessor",
    "SharedState",
    "split_message",
    "negotiate",
    "parse_handshake",
    "EventKind",
    "classify",
    "User",
    "UserProfile",
    "Channel",
    "HandshakeResult",
    "OutboundEvent",
    "RtmError",
    "TransportError",
    "ConnectionLostError",
    "ConnectionClosedError",
    "MaxReconnectAttemptsError",
    "NegotiationError",
    "ProtocolDecodeError",
]
