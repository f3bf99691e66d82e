"""Configuration model for rtmlink."""

from typing import Optional

from pydantic import BaseModel, Field


class Config(BaseModel):
    """Configuration model."""

    # Credentials
    token: Optional[str] = None
    api_url: str = "https://slack.com/api/rtm.start"

    # Connection settings
    handshake_timeout_sec: float = 10.0
    heartbeat_sec: float = 30.0
    queue_size: int = Field(default=256, ge=1)

    # Message limits
    max_message_chars: int = Field(default=4000, ge=1)
    max_message_lines: int = Field(default=25, ge=1)

    # Reconnection settings
    initial_backoff_sec: float = 1.0
    max_backoff_sec: float = 60.0
    backoff_jitter: float = 0.1
    max_reconnect_attempts: int = 0  # 0 = retry forever
