from datetime import datetime

from pydantic import Field

from channelrelay.schemas.base import WireModel


class ReactionBucket(WireModel):
    """Who reacted with one emoji. Both lists hold distinct values in arrival order."""

    usernames: list[str] = []
    identities: list[int] = []


class ChatMessage(WireModel):
    id: str
    channel_id: str
    username: str
    identity: int | None = None
    content: str
    timestamp: datetime
    avatar_url: str | None = None
    reply_to_id: str | None = None
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    is_system: bool = False
    reactions: dict[str, ReactionBucket] = Field(default_factory=dict)


class PrivateMessage(WireModel):
    from_identity: int
    from_username: str
    to_identity: int
    content: str
    timestamp: datetime
