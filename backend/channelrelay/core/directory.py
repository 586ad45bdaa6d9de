"""Participant directory: who is in one channel, keyed case-insensitively."""

from channelrelay.schemas.participant import Participant, PresenceInfo


def _key(username: str) -> str:
    return username.casefold()


class ParticipantDirectory:
    def __init__(self) -> None:
        self._participants: dict[str, Participant] = {}
        self._typing: dict[str, str] = {}  # casefolded -> display name, in start order

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, username: object) -> bool:
        return isinstance(username, str) and _key(username) in self._participants

    def add(
        self,
        username: str,
        identity: int | None = None,
        avatar_url: str | None = None,
        presence: PresenceInfo | None = None,
    ) -> Participant:
        """Insert or refresh a participant.

        Fields left as None keep their stored value; the typing flag is only
        ever changed through set_typing().
        """
        participant = self._participants.get(_key(username))
        if participant is None:
            participant = Participant(username=username)
            self._participants[_key(username)] = participant
        else:
            participant.username = username

        if identity is not None:
            participant.identity = identity
        if avatar_url is not None:
            participant.avatar_url = avatar_url
        if presence is not None:
            self._merge_presence(participant, presence)
        return participant.model_copy()

    def update_presence(self, username: str, presence: PresenceInfo) -> Participant | None:
        participant = self._participants.get(_key(username))
        if participant is None:
            return None
        self._merge_presence(participant, presence)
        return participant.model_copy()

    @staticmethod
    def _merge_presence(participant: Participant, presence: PresenceInfo) -> None:
        if presence.locale is not None:
            participant.locale = presence.locale
        if presence.preferred_language is not None:
            participant.preferred_language = presence.preferred_language
        if presence.dm_public_key is not None:
            participant.dm_public_key = presence.dm_public_key

    def remove(self, username: str) -> Participant | None:
        self._typing.pop(_key(username), None)
        return self._participants.pop(_key(username), None)

    def get(self, username: str) -> Participant | None:
        participant = self._participants.get(_key(username))
        return participant.model_copy() if participant else None

    def members(self) -> list[Participant]:
        return [p.model_copy() for p in self._participants.values()]

    def set_typing(self, username: str, is_typing: bool) -> bool:
        """Returns False when the username is not a participant."""
        participant = self._participants.get(_key(username))
        if participant is None:
            return False
        participant.is_typing = is_typing
        if is_typing:
            self._typing[_key(username)] = participant.username
        else:
            self._typing.pop(_key(username), None)
        return True

    def typing_usernames(self) -> list[str]:
        return list(self._typing.values())
