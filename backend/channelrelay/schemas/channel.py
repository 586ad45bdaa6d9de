from datetime import datetime

from channelrelay.schemas.base import WireModel
from channelrelay.schemas.message import ChatMessage
from channelrelay.schemas.participant import Participant


class PinVoteView(WireModel):
    message_id: str
    voters: list[str]


class KickVoteView(WireModel):
    target_username: str
    voters: list[str]


class ChannelSnapshot(WireModel):
    """Everything a freshly joined client needs to render the room."""

    channel_id: str
    group_id: int | None = None
    created_at: datetime
    created_by: str
    history: list[ChatMessage]
    participants: list[Participant]
    typing_usernames: list[str]
    pinned_message_id: str | None = None
    active_pin_vote: PinVoteView | None = None
    active_kick_vote: KickVoteView | None = None
    language_code: str
    language_votes: dict[str, list[str]]


class SessionSummary(WireModel):
    channel_id: str
    participant_count: int
    avatar_urls: list[str]


class GameGroup(WireModel):
    group_id: int
    session_count: int
    total_participants: int
    sessions: list[SessionSummary]
    name: str | None = None
    image_url: str | None = None
