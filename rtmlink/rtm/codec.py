"""
Decoding of inbound JSON documents.
"""

import json
import logging
from typing import Any, Dict, Union

from rtmlink.rtm.exceptions import ProtocolDecodeError

logger = logging.getLogger(__name__)


def as_text(payload: Union[str, bytes]) -> str:
    """Return payload as str, decoding bytes as UTF-8."""
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolDecodeError(
                f"Payload is not valid UTF-8: {e}",
                payload=payload.decode("utf-8", errors="replace"),
                offset=e.start,
            ) from e
    return payload


def decode_document(payload: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse a JSON object.

    Args:
        payload: Raw JSON text

    Returns:
        The decoded object

    Raises:
        ProtocolDecodeError: If the payload is not JSON or not an object
    """
    text = as_text(payload)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolDecodeError(
            f"Malformed JSON: {e.msg} at offset {e.pos}",
            payload=text,
            offset=e.pos,
        ) from e

    if not isinstance(data, dict):
        raise ProtocolDecodeError(
            f"Expected a JSON object, got {type(data).__name__}",
            payload=text,
        )

    return data


def decode_frame(frame: Union[str, bytes]) -> Dict[str, Any]:
    """Decode a single inbound frame, logging the excerpt on failure."""
    try:
        return decode_document(frame)
    except ProtocolDecodeError as e:
        logger.warning(f"Dropping malformed frame: {e}")
        logger.warning(f"Near: {e.excerpt!r}")
        raise
