"""
Shared snapshot of remote state: who we are, the user directory and channels.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional

from rtmlink.rtm.models import Channel, HandshakeResult, User

logger = logging.getLogger(__name__)


class SharedState:
    """
    Identity, user directory and channel list for one connection.

    Written only by the event processor's loop. The application may read
    from any thread, so every access takes the lock; accessors return
    copies so callers never observe a half-applied update.
    """

    def __init__(
        self,
        identity: Optional[User] = None,
        users: Iterable[User] = (),
        channels: Iterable[Channel] = (),
    ):
        self._lock = threading.RLock()
        self._identity = identity
        self._users: Dict[str, User] = {}
        self._channels: tuple[Channel, ...] = tuple(channels)

        for user in users:
            self._users[user.id] = user

    @classmethod
    def from_handshake(cls, handshake: Optional[HandshakeResult]) -> "SharedState":
        state = cls()
        if handshake is not None:
            state.load(handshake)
        return state

    def load(self, handshake: HandshakeResult) -> None:
        """
        Apply a handshake snapshot.

        Replaces the identity and channel list, and upserts every user.
        """
        with self._lock:
            self._identity = handshake.identity
            self._channels = tuple(handshake.channels)
            for user in handshake.users:
                self._users[user.id] = user

        logger.debug(
            f"Loaded state: {len(handshake.users)} users, {len(handshake.channels)} channels"
        )

    def upsert_user(self, user: User) -> None:
        """Insert the user, or replace the existing entry with the same id."""
        with self._lock:
            self._users[user.id] = user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        with self._lock:
            for channel in self._channels:
                if channel.id == channel_id:
                    return channel
            return None

    @property
    def identity(self) -> Optional[User]:
        with self._lock:
            return self._identity

    @property
    def users(self) -> Dict[str, User]:
        with self._lock:
            return dict(self._users)

    @property
    def channels(self) -> tuple[Channel, ...]:
        with self._lock:
            return self._channels

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready copy of the whole record."""
        with self._lock:
            return {
                "self": self._identity.model_dump() if self._identity else None,
                "users": {uid: user.model_dump() for uid, user in self._users.items()},
                "channels": [channel.model_dump() for channel in self._channels],
            }
