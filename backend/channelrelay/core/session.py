"""
ChannelSession: one chat room bound to one remote game-server instance.

Every public method takes the session's own lock and runs to completion
without awaiting, so a session is only ever mutated by one writer at a time
while unrelated sessions proceed independently.
"""

import logging
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from channelrelay.config import settings
from channelrelay.core.directory import ParticipantDirectory
from channelrelay.core.ledger import MessageLedger
from channelrelay.core.votes import LanguageBallotResult, LanguageTally, QuorumVote
from channelrelay.schemas.channel import ChannelSnapshot, KickVoteView, PinVoteView
from channelrelay.schemas.message import ChatMessage
from channelrelay.schemas.participant import Participant, PresenceInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PinOutcome:
    pinned_message_id: str | None
    active_vote: PinVoteView | None
    pinned_now: bool


@dataclass(frozen=True)
class KickOutcome:
    target_username: str
    active_vote: KickVoteView | None
    kicked_now: bool
    removed: Participant | None = None


class ChannelSession:
    def __init__(
        self,
        channel_id: str,
        created_by: str,
        group_id: int | None = None,
        history_limit: int | None = None,
        default_language: str | None = None,
    ) -> None:
        self.channel_id = channel_id
        self.group_id = group_id
        self.created_by = created_by
        self.created_at = datetime.now(timezone.utc)

        self._lock = threading.RLock()
        self.directory = ParticipantDirectory()
        self.ledger = MessageLedger(history_limit)
        self.pinned_message_id: str | None = None
        self.pin_vote = QuorumVote()
        self.kick_vote = QuorumVote(fold_candidate=True)
        self.language = LanguageTally(default_language or settings.DEFAULT_LANGUAGE)

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def assign_group(self, group_id: int | None) -> bool:
        """Record the game this server belongs to. The first declared id sticks."""
        with self._lock:
            if self.group_id is not None or group_id is None:
                return False
            self.group_id = group_id
            return True

    def add_participant(
        self,
        username: str,
        identity: int | None = None,
        avatar_url: str | None = None,
        presence: PresenceInfo | None = None,
    ) -> Participant:
        with self._lock:
            return self.directory.add(username, identity, avatar_url, presence)

    def remove_participant(self, username: str) -> Participant | None:
        """Remove a participant, their typing state and their language ballot.

        Open pin/kick votes are left alone; they are re-checked on the next ballot.
        """
        with self._lock:
            removed = self.directory.remove(username)
            if removed is not None:
                self.language.withdraw(username)
            return removed

    def update_presence(self, username: str, presence: PresenceInfo) -> Participant | None:
        with self._lock:
            return self.directory.update_presence(username, presence)

    def participant(self, username: str) -> Participant | None:
        with self._lock:
            return self.directory.get(username)

    def participants(self) -> list[Participant]:
        with self._lock:
            return self.directory.members()

    @property
    def participant_count(self) -> int:
        with self._lock:
            return len(self.directory)

    def set_typing(self, username: str, is_typing: bool) -> bool:
        with self._lock:
            return self.directory.set_typing(username, is_typing)

    def typing_usernames(self) -> list[str]:
        with self._lock:
            return self.directory.typing_usernames()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def compose_message(
        self,
        username: str,
        content: str,
        identity: int | None = None,
        reply_to_id: str | None = None,
    ) -> ChatMessage:
        """Build (but do not store) a message, filling author details from the directory."""
        with self._lock:
            author = self.directory.get(username)
        return ChatMessage(
            id=str(uuid.uuid4()),
            channel_id=self.channel_id,
            username=username,
            identity=identity if identity is not None else (author.identity if author else None),
            content=content,
            timestamp=datetime.now(timezone.utc),
            avatar_url=author.avatar_url if author else None,
            reply_to_id=reply_to_id,
        )

    def append_message(self, message: ChatMessage, author_token: str | None = None) -> None:
        with self._lock:
            self.ledger.append(message, author_token)

    def message(self, message_id: str) -> ChatMessage | None:
        with self._lock:
            return self.ledger.get(message_id)

    def history(self) -> list[ChatMessage]:
        with self._lock:
            return self.ledger.history()

    def _may_modify(self, message: ChatMessage, username: str, identity: int | None, token: str | None) -> bool:
        expected = self.ledger.author_token(message.id)
        if expected:
            return isinstance(token, str) and secrets.compare_digest(token, expected)
        if message.identity is not None and identity is not None and message.identity == identity:
            return True
        # same folding the participant directory keys on
        return message.username.casefold() == username.casefold()

    def edit_message(
        self,
        message_id: str,
        username: str,
        content: str,
        identity: int | None = None,
        token: str | None = None,
    ) -> ChatMessage | None:
        """Returns the updated message, or None when missing or not the author's to change."""
        with self._lock:
            existing = self.ledger.get(message_id)
            if existing is None or not self._may_modify(existing, username, identity, token):
                return None
            return self.ledger.edit(message_id, content)

    def delete_message(
        self,
        message_id: str,
        username: str,
        identity: int | None = None,
        token: str | None = None,
    ) -> ChatMessage | None:
        with self._lock:
            existing = self.ledger.get(message_id)
            if existing is None or not self._may_modify(existing, username, identity, token):
                return None
            return self.ledger.delete(message_id)

    def add_reaction(
        self, message_id: str, emoji: str, username: str, identity: int | None = None
    ) -> ChatMessage | None:
        with self._lock:
            if username not in self.directory:
                return None
            return self.ledger.add_reaction(message_id, emoji, username, identity)

    def remove_reaction(
        self, message_id: str, emoji: str, username: str, identity: int | None = None
    ) -> ChatMessage | None:
        with self._lock:
            if username not in self.directory:
                return None
            return self.ledger.remove_reaction(message_id, emoji, username, identity)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def _pin_view(self) -> PinVoteView | None:
        if self.pin_vote.candidate is None:
            return None
        return PinVoteView(message_id=self.pin_vote.candidate, voters=self.pin_vote.voters)

    def _kick_view(self) -> KickVoteView | None:
        if self.kick_vote.candidate is None:
            return None
        return KickVoteView(target_username=self.kick_vote.candidate, voters=self.kick_vote.voters)

    def vote_pin(self, message_id: str, voter: str) -> PinOutcome | None:
        """None when the message is unknown or the voter is not in the room."""
        with self._lock:
            if message_id not in self.ledger or voter not in self.directory:
                return None
            result = self.pin_vote.cast(message_id, voter, len(self.directory))
            if result.reached:
                self.pinned_message_id = message_id
                logger.info("channel %s pinned message %s", self.channel_id, message_id)
            return PinOutcome(
                pinned_message_id=self.pinned_message_id,
                active_vote=self._pin_view(),
                pinned_now=result.reached,
            )

    def vote_kick(self, target_username: str, voter: str) -> KickOutcome | None:
        """On quorum the target is removed here, before the outcome is returned."""
        with self._lock:
            if voter not in self.directory:
                return None
            result = self.kick_vote.cast(target_username, voter, len(self.directory))
            removed = None
            if result.reached:
                removed = self.directory.remove(target_username)
                self.language.withdraw(target_username)
                logger.info("channel %s vote-kicked %s", self.channel_id, target_username)
            return KickOutcome(
                target_username=target_username,
                active_vote=self._kick_view(),
                kicked_now=result.reached,
                removed=removed,
            )

    def vote_language(self, code: str, voter: str) -> LanguageBallotResult | None:
        with self._lock:
            if voter not in self.directory:
                return None
            result = self.language.cast(code, voter, len(self.directory))
            if result.changed_now:
                logger.info("channel %s switched language to %s", self.channel_id, result.current)
            return result

    def pin_state(self) -> tuple[str | None, PinVoteView | None]:
        with self._lock:
            return self.pinned_message_id, self._pin_view()

    def kick_state(self) -> KickVoteView | None:
        with self._lock:
            return self._kick_view()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> ChannelSnapshot:
        with self._lock:
            return ChannelSnapshot(
                channel_id=self.channel_id,
                group_id=self.group_id,
                created_at=self.created_at,
                created_by=self.created_by,
                history=self.ledger.history(),
                participants=self.directory.members(),
                typing_usernames=self.directory.typing_usernames(),
                pinned_message_id=self.pinned_message_id,
                active_pin_vote=self._pin_view(),
                active_kick_vote=self._kick_view(),
                language_code=self.language.current,
                language_votes=self.language.tally(),
            )
