"""
A single websocket generation to the streaming endpoint.
"""

import asyncio
import logging
from typing import Optional, Union

import aiohttp

from rtmlink.rtm.exceptions import ConnectionLostError, TransportError

logger = logging.getLogger(__name__)


class RtmWebSocket:
    """
    One live websocket. Replaced wholesale on reconnection, never reopened.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._ws = ws
        self._session = session
        self._closed = False

    @classmethod
    async def connect(
        cls,
        url: str,
        timeout: float = 10.0,
        heartbeat: Optional[float] = 30.0,
    ) -> "RtmWebSocket":
        """
        Open a websocket to the URL returned by negotiation.

        Args:
            url: The streaming endpoint
            timeout: Connection timeout in seconds
            heartbeat: Ping interval used by aiohttp to detect dead peers

        Returns:
            Connected RtmWebSocket instance

        Raises:
            TransportError: If the connection could not be established
        """
        logger.info(f"Connecting to {url}")

        session = aiohttp.ClientSession()
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, heartbeat=heartbeat),
                timeout=timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await session.close()
            raise TransportError(f"WebSocket connection failed: {e!r}") from e
        except BaseException:
            await session.close()
            raise

        return cls(ws=ws, session=session)

    async def receive_frame(self) -> str:
        """
        Wait for the next text frame.

        Raises:
            ConnectionLostError: If the socket closed or failed
        """
        while True:
            if self._closed:
                raise ConnectionLostError("WebSocket already closed")

            try:
                msg = await self._ws.receive()
            except (aiohttp.ClientError, RuntimeError) as e:
                raise ConnectionLostError(f"Error receiving frame: {e!r}") from e

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data.decode("utf-8", errors="replace")
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                logger.warning("WebSocket closed by server")
                raise ConnectionLostError("WebSocket closed by server")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"WebSocket error: {self._ws.exception()}")
                raise ConnectionLostError(f"WebSocket error: {self._ws.exception()}")
            else:
                logger.debug(f"Ignoring websocket message of type {msg.type}")

    async def send_frame(self, frame: Union[str, bytes]) -> None:
        """Send one frame, raising ConnectionLostError if the socket is unusable."""
        if self.closed:
            raise ConnectionLostError("Cannot send on a closed websocket")

        if isinstance(frame, bytes):
            frame = frame.decode("utf-8")

        try:
            await self._ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.error(f"Failed to send frame: {e!r}")
            raise ConnectionLostError(f"Failed to send frame: {e!r}") from e

    async def close(self) -> None:
        """Close the websocket and its HTTP session."""
        if self._closed:
            return

        self._closed = True

        try:
            if not self._ws.closed:
                await self._ws.close()
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.warning(f"Error closing WebSocket: {e!r}")

        if self._session is not None:
            await self._session.close()

        logger.info("WebSocket connection closed")

    @property
    def closed(self) -> bool:
        return self._closed or self._ws.closed
