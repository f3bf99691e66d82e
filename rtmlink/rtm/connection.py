"""
Reconnect-transparent duplex frame channel over a replaceable websocket.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from rtmlink.rtm.codec import as_text
from rtmlink.rtm.exceptions import (
    ConnectionClosedError,
    MaxReconnectAttemptsError,
    RtmError,
)
from rtmlink.rtm.models import HandshakeResult
from rtmlink.rtm.reconnect import ReconnectionManager
from rtmlink.rtm.websocket import RtmWebSocket

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

Negotiator = Callable[[], Awaitable[HandshakeResult]]
Dialer = Callable[[str], Awaitable[Any]]

# Marks the end of the inbound stream once the connection is closed.
_CLOSED = object()


class Connection:
    """
    Duplex frame channel that survives socket failures.

    Callers only see read() and write(). Behind them one socket generation
    at a time is pumped by a read task and a write task; when either ends,
    the supervisor negotiates again, dials the new endpoint and swaps the
    socket in under the same queues. Frames already queued for sending are
    kept, including the one that was being sent when the socket broke, and
    a received frame still waiting for room in the inbound queue is
    delivered ahead of anything the next socket reads.

    The socket returned by the dialer must provide ``receive_frame()``,
    ``send_frame(frame)``, ``close()`` and a ``closed`` property, as
    RtmWebSocket does.
    """

    def __init__(
        self,
        negotiator: Negotiator,
        dialer: Optional[Dialer] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        reconnection: Optional[ReconnectionManager] = None,
    ):
        """
        Args:
            negotiator: Coroutine factory returning a fresh HandshakeResult
            dialer: Coroutine taking the streaming URL and returning a socket
            queue_size: Capacity of the inbound and outbound queues
            reconnection: Backoff policy used between reconnection attempts
        """
        self._negotiate = negotiator
        self._dial = dialer or RtmWebSocket.connect
        self._reconnection = reconnection or ReconnectionManager()

        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

        self._handshake: Optional[HandshakeResult] = None
        self._socket: Optional[Any] = None
        self._pumps: list[asyncio.Task] = []
        self._pending: Optional[str] = None
        self._inbound_pending: Optional[str] = None
        self._supervisor: Optional[asyncio.Task] = None
        self._generation = 0
        self._swap_lock = asyncio.Lock()
        self._closed = False
        self._closed_event = asyncio.Event()
        self._total_reconnects = 0

    async def start(self) -> HandshakeResult:
        """
        Negotiate, connect and begin pumping.

        Failures here are not retried.

        Raises:
            NegotiationError: If the handshake was rejected
            TransportError: If the service could not be reached
            ProtocolDecodeError: If the handshake response was malformed
        """
        if self._closed:
            raise ConnectionClosedError("Connection is closed")
        if self._supervisor is not None:
            raise RuntimeError("Connection already started")

        handshake, socket = await self._open()
        await self.swap_transport(handshake, socket)
        self._supervisor = asyncio.create_task(self._supervise(), name="rtm-supervisor")
        return handshake

    async def read(self) -> str:
        """
        Wait for the next inbound frame.

        Raises:
            ConnectionClosedError: Once closed and every buffered frame has been read
        """
        if self._closed and self._inbound.empty():
            raise ConnectionClosedError("Connection is closed")

        frame = await self._inbound.get()
        if frame is _CLOSED:
            try:
                self._inbound.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                pass
            raise ConnectionClosedError("Connection is closed")

        return frame

    async def write(self, frame: Union[str, bytes]) -> None:
        """
        Queue a frame for sending. Waits only while the outbound queue is full.

        Raises:
            ConnectionClosedError: If the connection is or becomes closed
                before the frame was queued
        """
        if self._closed:
            raise ConnectionClosedError("Connection is closed")

        await self._unless_closed(self._outbound.put(as_text(frame)))

    async def flush(self) -> None:
        """
        Wait until every queued frame has been sent on some socket.

        Raises:
            ConnectionClosedError: If the connection closes with frames still unsent
        """
        if self._closed:
            raise ConnectionClosedError("Connection is closed")

        await self._unless_closed(self._outbound.join())

    async def swap_transport(self, handshake: HandshakeResult, socket: Any) -> None:
        """
        Replace the live socket, keeping both queues.

        Stops the pumps of the current generation, closes its socket and
        starts a read pump and a write pump on the new one.
        """
        async with self._swap_lock:
            await self._stop_pumps()

            old_socket = self._socket
            self._handshake = handshake
            self._socket = socket
            self._generation += 1

            if old_socket is not None and old_socket is not socket:
                await old_socket.close()

            generation = self._generation
            self._pumps = [
                asyncio.create_task(self._read_pump(socket), name=f"rtm-read-{generation}"),
                asyncio.create_task(self._write_pump(socket), name=f"rtm-write-{generation}"),
            ]
        logger.info(f"Transport generation {generation} active")

    async def close(self) -> None:
        """Stop the supervisor and pumps, release the socket and wake readers."""
        if self._closed:
            return

        self._closed = True
        self._closed_event.set()
        logger.info("Closing connection...")

        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and supervisor is not asyncio.current_task():
            supervisor.cancel()
            await asyncio.gather(supervisor, return_exceptions=True)

        await self._stop_pumps()

        if self._socket is not None:
            await self._socket.close()

        try:
            self._inbound.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # readers are not blocked while frames remain; read() checks _closed
            pass

        logger.info("Connection closed")

    async def _open(self) -> Tuple[HandshakeResult, Any]:
        handshake = await self._negotiate()
        socket = await self._dial(handshake.url)
        return handshake, socket

    async def _unless_closed(self, awaitable: Awaitable[Any]) -> Any:
        """Await the operation, giving up with ConnectionClosedError if close() wins."""
        operation = asyncio.ensure_future(awaitable)
        closing = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait({operation, closing}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closing.cancel()
            if not operation.done():
                operation.cancel()

        if operation.done() and not operation.cancelled():
            return operation.result()

        raise ConnectionClosedError("Connection is closed")

    async def _stop_pumps(self) -> None:
        pumps, self._pumps = self._pumps, []
        for task in pumps:
            task.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)

    async def _read_pump(self, socket: Any) -> None:
        while True:
            if self._inbound_pending is None:
                self._inbound_pending = await socket.receive_frame()
            await self._inbound.put(self._inbound_pending)
            self._inbound_pending = None

    async def _write_pump(self, socket: Any) -> None:
        while True:
            if self._pending is None:
                self._pending = await self._outbound.get()
            await socket.send_frame(self._pending)
            self._pending = None
            self._outbound.task_done()

    async def _supervise(self) -> None:
        """Reconnect exactly once per failed socket generation."""
        try:
            while not self._closed:
                generation = self._generation
                done, _ = await asyncio.wait(self._pumps, return_when=asyncio.FIRST_COMPLETED)

                async with self._swap_lock:
                    if self._closed:
                        break
                    if generation != self._generation:
                        # replaced by an explicit swap_transport call
                        continue

                for task in done:
                    if not task.cancelled() and task.exception() is not None:
                        logger.warning(
                            f"Transport generation {generation} failed: {task.exception()!r}"
                        )

                await self._reconnect()

        except MaxReconnectAttemptsError as e:
            logger.error(f"Giving up on connection: {e}")
            await self.close()

    async def _reconnect(self) -> None:
        await self._stop_pumps()
        if self._socket is not None:
            await self._socket.close()

        while not self._closed:
            if not await self._reconnection.wait_before_reconnect():
                raise MaxReconnectAttemptsError(
                    f"Failed to reconnect after {self._reconnection.attempts - 1} attempts"
                )

            try:
                handshake, socket = await self._open()
            except RtmError as e:
                logger.warning(f"Reconnection attempt failed: {e}")
                continue
            except Exception as e:
                logger.error(f"Unexpected error while reconnecting: {e}", exc_info=True)
                continue

            if self._closed:
                await socket.close()
                return

            await self.swap_transport(handshake, socket)
            self._reconnection.reset()
            self._total_reconnects += 1
            return

    @property
    def handshake(self) -> Optional[HandshakeResult]:
        """Handshake result of the current socket generation."""
        return self._handshake

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_connected(self) -> bool:
        return not self._closed and self._socket is not None and not self._socket.closed

    @property
    def total_reconnects(self) -> int:
        return self._total_reconnects

    @property
    def pending_outbound(self) -> int:
        """Frames queued or in flight that have not been sent yet."""
        return self._outbound.qsize() + (1 if self._pending is not None else 0)
