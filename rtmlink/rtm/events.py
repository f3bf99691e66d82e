"""
Classification of inbound frames.
"""

from enum import Enum
from typing import Any, Dict

SUPPRESSED_SUBTYPES = frozenset({"message_changed", "message_deleted"})


class EventKind(str, Enum):
    """Inbound event types the processor acts on."""

    MESSAGE = "message"
    ERROR = "error"
    HELLO = "hello"
    USER_CHANGE = "user_change"
    UNKNOWN = "unknown"


def classify(type_tag: Any) -> EventKind:
    """Map a raw ``type`` value to its EventKind, UNKNOWN if unrecognized."""
    if not isinstance(type_tag, str):
        return EventKind.UNKNOWN

    try:
        return EventKind(type_tag)
    except ValueError:
        return EventKind.UNKNOWN


def is_acknowledgment(frame: Dict[str, Any]) -> bool:
    """An ack for a sent event carries the sent event's id as reply_to."""
    return "reply_to" in frame


def is_suppressed(frame: Dict[str, Any]) -> bool:
    """Edits and deletions of earlier messages are not new content."""
    return (
        frame.get("type") == EventKind.MESSAGE.value
        and frame.get("subtype") in SUPPRESSED_SUBTYPES
    )
