"""
Event processor: the dispatch loop over inbound frames and the chunked writer.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from rtmlink.rtm.chunking import MAX_MESSAGE_CHARS, MAX_MESSAGE_LINES, split_message
from rtmlink.rtm.codec import decode_frame
from rtmlink.rtm.connection import DEFAULT_QUEUE_SIZE, Connection
from rtmlink.rtm.events import EventKind, classify, is_acknowledgment, is_suppressed
from rtmlink.rtm.exceptions import ConnectionClosedError, ProtocolDecodeError
from rtmlink.rtm.models import OutboundEvent, UserChangeEvent
from rtmlink.rtm.state import SharedState

logger = logging.getLogger(__name__)

# Oldest unacknowledged ids are forgotten beyond this many.
MAX_UNACKED = 1024


class EventProcessor:
    """
    Reads frames from a Connection, keeps SharedState up to date and
    forwards message frames to the application.

    The loop is the only writer of the shared state.
    """

    def __init__(
        self,
        connection: Connection,
        state: Optional[SharedState] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_message_chars: int = MAX_MESSAGE_CHARS,
        max_message_lines: int = MAX_MESSAGE_LINES,
    ):
        self._connection = connection
        self._state = state if state is not None else SharedState.from_handshake(connection.handshake)
        self._messages: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._max_message_chars = max_message_chars
        self._max_message_lines = max_message_lines

        self._sequence = 0
        self._unacked: Dict[int, float] = {}
        self._write_lock = asyncio.Lock()
        self._running = False

        # Statistics
        self._total_frames = 0
        self._total_errors = 0

    async def run(self) -> None:
        """Process frames until the connection is closed or stop() is called."""
        self._running = True
        logger.info("Event processor started")

        while self._running:
            try:
                raw = await self._connection.read()
            except ConnectionClosedError:
                break

            await self.process(raw)

        self._running = False
        logger.info("Event processor stopped")

    def stop(self) -> None:
        self._running = False

    async def process(self, raw: Union[str, bytes]) -> None:
        """Handle one inbound frame. Never raises for a bad frame."""
        self._total_frames += 1
        logger.debug(f"Received frame: {raw!r}")

        try:
            frame = decode_frame(raw)
        except ProtocolDecodeError:
            self._total_errors += 1
            return

        try:
            await self._dispatch(frame, raw)
        except Exception as e:
            self._total_errors += 1
            logger.error(f"Error handling frame of type {frame.get('type')!r}: {e}", exc_info=True)

    async def _dispatch(self, frame: Dict[str, Any], raw: Union[str, bytes]) -> None:
        if is_acknowledgment(frame):
            self._on_acknowledgment(frame)
            return

        if is_suppressed(frame):
            logger.debug(f"Suppressed {frame.get('subtype')} event")
            return

        kind = classify(frame.get("type"))

        if kind is EventKind.HELLO:
            self._on_hello()
        elif kind is EventKind.MESSAGE:
            await self._messages.put(raw)
        elif kind is EventKind.USER_CHANGE:
            self._on_user_change(raw)
        elif kind is EventKind.ERROR:
            logger.error(f"Error received from service: {frame.get('error', frame)}")
        else:
            logger.debug(f"Ignoring event of type {frame.get('type')!r}")

    def _on_hello(self) -> None:
        """The service confirmed the (re)connection; take the latest handshake."""
        handshake = self._connection.handshake
        if handshake is None:
            logger.warning("Received hello without a handshake")
            return

        self._state.load(handshake)
        identity = handshake.identity
        logger.info(f"Connected as {identity.name} ({identity.id})")

    def _on_user_change(self, raw: Union[str, bytes]) -> None:
        try:
            event = UserChangeEvent.model_validate_json(raw)
        except ValidationError as e:
            self._total_errors += 1
            logger.error(f"Could not decode user_change event: {e}")
            logger.error(f"Raw event: {raw!r}")
            return

        self._state.upsert_user(event.user)
        logger.debug(f"Updated user {event.user.id}")

    def _on_acknowledgment(self, frame: Dict[str, Any]) -> None:
        reply_to = frame.get("reply_to")
        sent_at = self._unacked.pop(reply_to, None)

        if frame.get("ok") is False:
            logger.warning(f"Event {reply_to} rejected: {frame.get('error')}")
        elif sent_at is not None:
            logger.debug(f"Event {reply_to} acknowledged after {time.monotonic() - sent_at:.3f}s")
        else:
            logger.debug(f"Acknowledgment for untracked event {reply_to}")

    async def send_event(self, event_type: str, channel: str, text: str) -> int:
        """
        Send a single event with the next sequence id.

        Returns:
            The id assigned to the event
        """
        self._sequence += 1
        event = OutboundEvent(id=self._sequence, type=event_type, channel=channel, text=text)

        self._unacked[event.id] = time.monotonic()
        if len(self._unacked) > MAX_UNACKED:
            del self._unacked[next(iter(self._unacked))]

        await self._connection.write(event.to_frame())
        return event.id

    async def write(self, channel: str, text: str) -> list[int]:
        """
        Send text to a channel, split to respect the message size and line limits.

        Returns:
            The ids of the events sent, one per chunk
        """
        chunks = split_message(text, self._max_message_chars, self._max_message_lines)
        if len(chunks) > 1:
            logger.debug(f"Splitting message to {channel} into {len(chunks)} chunks")

        ids = []
        async with self._write_lock:
            for chunk in chunks:
                ids.append(await self.send_event(EventKind.MESSAGE.value, channel, chunk))
        return ids

    @property
    def state(self) -> SharedState:
        return self._state

    @property
    def messages(self) -> asyncio.Queue:
        """Raw message frames for the application."""
        return self._messages

    @property
    def sequence(self) -> int:
        """Id of the last event sent."""
        return self._sequence

    @property
    def unacknowledged(self) -> int:
        return len(self._unacked)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def total_frames(self) -> int:
        return self._total_frames

    @property
    def total_errors(self) -> int:
        return self._total_errors
