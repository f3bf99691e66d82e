"""
Gateway: the object handed to the embedding application.
"""

import asyncio
import functools
import logging
from typing import AsyncIterator, Optional, Union

from rtmlink.models import Config
from rtmlink.rtm.connection import Connection
from rtmlink.rtm.http import negotiate
from rtmlink.rtm.processor import EventProcessor
from rtmlink.rtm.reconnect import ReconnectionManager
from rtmlink.rtm.state import SharedState
from rtmlink.rtm.websocket import RtmWebSocket

logger = logging.getLogger(__name__)


class Gateway:
    """
    Bundles the inbound message channel, the outbound channel and the shared state.

    Usage:
        async with await connect(token) as gateway:
            async for frame in gateway:
                ...
            await gateway.write("C024BE91L", "hello")
    """

    def __init__(self, connection: Connection, processor: Optional[EventProcessor] = None):
        self._connection = connection
        self._processor = processor or EventProcessor(connection)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: Config) -> "Gateway":
        """Wire a gateway from configuration. Call start() to connect."""
        if not config.token:
            raise ValueError("A token is required to connect")

        connection = Connection(
            negotiator=functools.partial(
                negotiate,
                config.api_url,
                config.token,
                timeout=config.handshake_timeout_sec,
            ),
            dialer=functools.partial(
                RtmWebSocket.connect,
                timeout=config.handshake_timeout_sec,
                heartbeat=config.heartbeat_sec,
            ),
            queue_size=config.queue_size,
            reconnection=ReconnectionManager(
                initial_backoff=config.initial_backoff_sec,
                max_backoff=config.max_backoff_sec,
                jitter=config.backoff_jitter,
                max_attempts=config.max_reconnect_attempts,
            ),
        )
        processor = EventProcessor(
            connection,
            state=SharedState(),
            queue_size=config.queue_size,
            max_message_chars=config.max_message_chars,
            max_message_lines=config.max_message_lines,
        )
        return cls(connection, processor)

    async def start(self) -> None:
        """Connect and start the processor loop. Startup failures are raised."""
        if self._task is not None:
            return

        handshake = await self._connection.start()
        self.state.load(handshake)
        self._task = asyncio.create_task(self._processor.run(), name="rtm-processor")

    async def close(self) -> None:
        """Stop processing and release the connection."""
        self._processor.stop()
        await self._connection.close()

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def receive(self) -> Union[str, bytes]:
        """Wait for the next inbound message frame."""
        return await self._processor.messages.get()

    async def send(self, frame: Union[str, bytes]) -> None:
        """Queue a raw frame for the service, bypassing chunking."""
        await self._connection.write(frame)

    async def write(self, channel: str, text: str) -> list[int]:
        """Send a message, split as needed. Returns the event ids used."""
        return await self._processor.write(channel, text)

    async def flush(self) -> None:
        await self._connection.flush()

    async def __aenter__(self) -> "Gateway":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def __aiter__(self) -> AsyncIterator[Union[str, bytes]]:
        """Yield message frames until the gateway is closed and drained."""
        while True:
            if self._task is None and self._processor.messages.empty():
                return

            getter = asyncio.ensure_future(self._processor.messages.get())
            done, _ = await asyncio.wait(
                {getter, self._task} if self._task is not None else {getter},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if getter in done:
                yield getter.result()
            else:
                getter.cancel()
                await asyncio.gather(getter, return_exceptions=True)
                while not self._processor.messages.empty():
                    yield self._processor.messages.get_nowait()
                return

    @property
    def state(self) -> SharedState:
        return self._processor.state

    @property
    def messages(self) -> asyncio.Queue:
        return self._processor.messages

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def processor(self) -> EventProcessor:
        return self._processor

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected


async def connect(
    token: str,
    api_url: Optional[str] = None,
    config: Optional[Config] = None,
) -> Gateway:
    """
    Negotiate, connect and start processing.

    Raises:
        NegotiationError: If the service rejected the token
        TransportError: If the service could not be reached
        ProtocolDecodeError: If the handshake response was malformed
    """
    update = {"token": token}
    if api_url is not None:
        update["api_url"] = api_url
    config = (config or Config()).model_copy(update=update)
    gateway = Gateway.from_config(config)
    try:
        await gateway.start()
    except Exception:
        await gateway.close()
        raise
    return gateway

