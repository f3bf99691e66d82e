"""
HTTP negotiation that yields the websocket URL and the initial state snapshot.
"""

import asyncio
import logging

import aiohttp
from pydantic import ValidationError

from rtmlink.rtm.codec import decode_document
from rtmlink.rtm.exceptions import NegotiationError, ProtocolDecodeError, TransportError
from rtmlink.rtm.models import HandshakeResult

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://slack.com/api/rtm.start"


def parse_handshake(body: str) -> HandshakeResult:
    """
    Decode a negotiation response body.

    Args:
        body: Raw response body

    Returns:
        The parsed handshake result

    Raises:
        ProtocolDecodeError: If the body is malformed
        NegotiationError: If the service answered with ok=false
    """
    try:
        data = decode_document(body)
    except ProtocolDecodeError as e:
        logger.error(f"Malformed negotiation response: {e}")
        logger.error(f"Near: {e.excerpt!r}")
        raise

    if not data.get("ok"):
        error = data.get("error") or "unknown error"
        raise NegotiationError(f"Negotiation rejected: {error}", body=body)

    try:
        return HandshakeResult.model_validate(data)
    except ValidationError as e:
        raise ProtocolDecodeError(
            f"Unexpected negotiation response shape: {e}",
            payload=body,
        ) from e


async def negotiate(
    api_url: str,
    token: str,
    timeout: float = 10.0,
) -> HandshakeResult:
    """
    Authenticate and obtain the streaming endpoint.

    Args:
        api_url: The negotiation endpoint
        token: The credential token
        timeout: Request timeout in seconds

    Returns:
        The handshake result containing the websocket URL and initial state

    Raises:
        TransportError: If the request could not be made
        NegotiationError: If the service rejected the request
        ProtocolDecodeError: If the response could not be decoded
    """
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            async with session.post(api_url, data={"token": token}) as response:
                body = await response.text()
                status = response.status

    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise TransportError(f"Negotiation request failed: {e!r}") from e

    if status != 200:
        raise NegotiationError(f"Negotiation failed: HTTP {status}", body=body)

    result = parse_handshake(body)
    logger.info(f"Negotiated streaming endpoint for {result.identity.name} ({result.identity.id})")
    return result
