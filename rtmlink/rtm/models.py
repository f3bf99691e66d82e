"""
Wire models for the RTM API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """Profile block attached to every user record."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    real_name: Optional[str] = None
    title: Optional[str] = None
    real_name_normalized: Optional[str] = None
    email: Optional[str] = None


class User(BaseModel):
    """A team member, including the authenticated account itself."""

    id: str
    name: Optional[str] = None
    real_name: Optional[str] = None
    deleted: bool = False
    color: Optional[str] = None
    is_admin: bool = False
    is_owner: bool = False
    is_primary_owner: bool = False
    is_bot: bool = False
    profile: UserProfile = Field(default_factory=UserProfile)


class Channel(BaseModel):
    """Channel descriptor as returned by the handshake."""

    id: str
    name: Optional[str] = None
    is_channel: bool = False
    is_im: bool = False
    created: int = 0
    creator: Optional[str] = None
    is_archived: bool = False
    is_general: bool = False
    is_member: bool = False
    members: list[str] = Field(default_factory=list)


class HandshakeResult(BaseModel):
    """Response of the negotiation request."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    error: Optional[str] = None
    url: str
    identity: User = Field(alias="self")
    users: list[User] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)


class OutboundEvent(BaseModel):
    """An event sent to the service, e.g. a message."""

    id: int
    type: str
    channel: str
    text: str

    def to_frame(self) -> str:
        """Serialize to a single newline-free JSON document."""
        return self.model_dump_json()


class UserChangeEvent(BaseModel):
    """Sent to every connection when a team member updates their profile."""

    type: str
    user: User
