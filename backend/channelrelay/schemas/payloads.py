"""Inbound event payloads.

A frame that fails validation is dropped by the dispatcher without a reply;
joinChannel is the only event that answers a refusal explicitly.
"""

from pydantic import Field

from channelrelay.schemas.base import WireModel
from channelrelay.schemas.participant import PresenceInfo


class JoinChannel(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    identity: int | None = None
    group_id: int | None = None
    locale: str | None = None
    preferred_language: str | None = None
    dm_public_key: str | None = None
    token: str | None = None

    def presence(self) -> PresenceInfo:
        return PresenceInfo(
            locale=self.locale,
            preferred_language=self.preferred_language,
            dm_public_key=self.dm_public_key,
        )


class SendMessage(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    identity: int | None = None
    reply_to_id: str | None = None
    token: str | None = None


class EditMessage(WireModel):
    channel_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    identity: int | None = None
    token: str | None = None


class DeleteMessage(WireModel):
    channel_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    identity: int | None = None
    token: str | None = None


class ReactionChange(WireModel):
    channel_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    emoji: str = Field(..., min_length=1, max_length=64)
    username: str = Field(..., min_length=1)
    identity: int | None = None


class VotePin(WireModel):
    channel_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)


class VoteKick(WireModel):
    channel_id: str = Field(..., min_length=1)
    target_username: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)


class VoteLanguage(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    language_code: str = Field(..., min_length=1)


class NotifyTyping(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    is_typing: bool = False


class SendPrivateMessage(WireModel):
    to_identity: int
    from_identity: int
    from_username: str = ""
    content: str = Field(..., min_length=1)


class UpdatePresence(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    locale: str | None = None
    preferred_language: str | None = None
    dm_public_key: str | None = None

    def presence(self) -> PresenceInfo:
        return PresenceInfo(
            locale=self.locale,
            preferred_language=self.preferred_language,
            dm_public_key=self.dm_public_key,
        )


class SearchUsers(WireModel):
    query: str = ""


class CreateGroup(WireModel):
    participants: list[int] = Field(..., min_length=1)
    name: str | None = Field(None, max_length=100)


class SendGroupMessage(WireModel):
    group_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
