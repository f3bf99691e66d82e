"""Pytest configuration and shared fixtures."""

import asyncio
import time
from typing import Any, Callable, Dict

import pytest

from rtmlink.rtm.connection import Connection
from rtmlink.rtm.exceptions import ConnectionLostError, NegotiationError
from rtmlink.rtm.models import HandshakeResult
from rtmlink.rtm.reconnect import ReconnectionManager


def handshake_payload(url: str = "wss://rtm.example.test/1") -> Dict[str, Any]:
    """A negotiation response as the service sends it."""
    return {
        "ok": True,
        "url": url,
        "self": {"id": "U0BOT", "name": "talbot", "is_bot": True},
        "users": [
            {
                "id": "U023BECGF",
                "name": "bobby",
                "real_name": "Bobby Tables",
                "is_admin": True,
                "profile": {"first_name": "Bobby", "email": "bobby@example.com"},
            },
            {"id": "U0BOT", "name": "talbot", "is_bot": True},
        ],
        "channels": [
            {
                "id": "C024BE91L",
                "name": "general",
                "is_channel": True,
                "is_general": True,
                "is_member": True,
                "created": 1360782804,
                "creator": "U023BECGF",
                "members": ["U023BECGF", "U0BOT"],
            }
        ],
    }


class FakeSocket:
    """In-memory stand-in for RtmWebSocket."""

    def __init__(self, url: str):
        self.url = url
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.fail_sends = False
        self._closed = False

    def feed(self, frame: str) -> None:
        self.incoming.put_nowait(frame)

    def drop(self) -> None:
        """Make the next receive fail as if the peer went away."""
        self.incoming.put_nowait(ConnectionLostError("peer went away"))

    async def receive_frame(self) -> str:
        item = await self.incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send_frame(self, frame: str) -> None:
        if self._closed or self.fail_sends:
            raise ConnectionLostError("send failed")
        self.sent.append(frame)

    async def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class FakeService:
    """Negotiator and dialer that hand out FakeSockets."""

    def __init__(self):
        self.sockets: list[FakeSocket] = []
        self.negotiations = 0
        self.reject_next = 0

    async def negotiate(self) -> HandshakeResult:
        self.negotiations += 1
        if self.reject_next > 0:
            self.reject_next -= 1
            raise NegotiationError("Negotiation rejected: invalid_auth", body='{"ok": false}')
        return HandshakeResult.model_validate(
            handshake_payload(f"wss://rtm.example.test/{self.negotiations}")
        )

    async def dial(self, url: str) -> FakeSocket:
        socket = FakeSocket(url)
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> FakeSocket:
        """The most recently dialed socket."""
        return self.sockets[-1]


def immediate_reconnection(max_attempts: int = 0) -> ReconnectionManager:
    return ReconnectionManager(initial_backoff=0, max_backoff=0, jitter=0, max_attempts=max_attempts)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def make_connection(service: FakeService) -> Callable[..., Connection]:
    def factory(queue_size: int = 16, max_attempts: int = 0) -> Connection:
        return Connection(
            negotiator=service.negotiate,
            dialer=service.dial,
            queue_size=queue_size,
            reconnection=immediate_reconnection(max_attempts),
        )

    return factory


@pytest.fixture
def eventually() -> Callable:
    """Poll a condition until it holds or the timeout expires."""

    async def wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.01)

    return wait
