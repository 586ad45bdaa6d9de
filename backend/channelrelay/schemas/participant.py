from channelrelay.schemas.base import WireModel


class PresenceInfo(WireModel):
    """Client-reported presence attributes. None means "not reported", never "clear"."""

    locale: str | None = None
    preferred_language: str | None = None
    dm_public_key: str | None = None


class Participant(WireModel):
    username: str
    identity: int | None = None
    avatar_url: str | None = None
    is_typing: bool = False
    locale: str | None = None
    preferred_language: str | None = None
    dm_public_key: str | None = None


class UserSearchResult(WireModel):
    username: str
    identity: int | None = None
    avatar_url: str | None = None
    channel_id: str
    online: bool = False
