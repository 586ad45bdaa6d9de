from datetime import datetime

from channelrelay.schemas.base import WireModel


class ChatGroup(WireModel):
    """A named group DM. The owner is always the first member."""

    id: str
    name: str | None = None
    owner_identity: int
    members: list[int]
    created_at: datetime


class GroupMessage(WireModel):
    id: str
    group_id: str
    from_identity: int
    from_username: str
    content: str
    timestamp: datetime
