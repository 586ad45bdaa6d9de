"""
Message ledger: bounded, ordered, mutable-in-place history for one channel.

Entries are kept in an OrderedDict keyed by message id, which is both the
ordered sequence and the id index. Edits, deletes and reactions store a new
value under the existing key, so ids and positions never move. Eviction pops
the oldest key and drops its author-token binding in the same step.

Nothing here awaits; callers hold the owning session's lock.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone

from channelrelay.config import settings
from channelrelay.schemas.message import ChatMessage, ReactionBucket

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MessageLedger:
    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity if capacity is not None else settings.HISTORY_LIMIT
        if self.capacity < 1:
            raise ValueError("ledger capacity must be at least 1")
        self._messages: OrderedDict[str, ChatMessage] = OrderedDict()
        self._author_tokens: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    # ------------------------------------------------------------------
    # Append / lookup
    # ------------------------------------------------------------------

    def append(self, message: ChatMessage, author_token: str | None = None) -> list[str]:
        """Store a new message, evicting the oldest entries beyond capacity.

        Returns the ids that were evicted (usually none, at most one).
        """
        if message.id in self._messages:
            raise ValueError(f"message id {message.id!r} already in ledger")

        self._messages[message.id] = message
        if author_token:
            self._author_tokens[message.id] = author_token

        evicted: list[str] = []
        while len(self._messages) > self.capacity:
            old_id, _ = self._messages.popitem(last=False)
            self._author_tokens.pop(old_id, None)
            evicted.append(old_id)
        if evicted:
            logger.debug("ledger evicted %s", evicted)
        return evicted

    def get(self, message_id: str) -> ChatMessage | None:
        return self._messages.get(message_id)

    def author_token(self, message_id: str) -> str | None:
        return self._author_tokens.get(message_id)

    def history(self) -> list[ChatMessage]:
        return list(self._messages.values())

    # ------------------------------------------------------------------
    # In-place mutation
    # ------------------------------------------------------------------

    def replace(self, message_id: str, **changes) -> ChatMessage | None:
        """Swap in a patched copy of a stored message, keeping its position."""
        existing = self._messages.get(message_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self._messages[message_id] = updated
        return updated

    def edit(self, message_id: str, content: str, at: datetime | None = None) -> ChatMessage | None:
        existing = self._messages.get(message_id)
        if existing is None or existing.deleted_at is not None:
            return None
        return self.replace(message_id, content=content, edited_at=at or _now())

    def delete(self, message_id: str, at: datetime | None = None) -> ChatMessage | None:
        """Blank the content and stamp deleted_at. The entry stays in history."""
        existing = self._messages.get(message_id)
        if existing is None or existing.deleted_at is not None:
            return None
        return self.replace(message_id, content="", deleted_at=at or _now())

    def add_reaction(
        self,
        message_id: str,
        emoji: str,
        username: str,
        identity: int | None = None,
    ) -> ChatMessage | None:
        existing = self._messages.get(message_id)
        if existing is None or existing.deleted_at is not None:
            return None

        bucket = existing.reactions.get(emoji) or ReactionBucket()
        usernames = list(bucket.usernames)
        identities = list(bucket.identities)
        if username not in usernames:
            usernames.append(username)
        if identity is not None and identity not in identities:
            identities.append(identity)

        reactions = dict(existing.reactions)
        reactions[emoji] = ReactionBucket(usernames=usernames, identities=identities)
        return self.replace(message_id, reactions=reactions)

    def remove_reaction(
        self,
        message_id: str,
        emoji: str,
        username: str,
        identity: int | None = None,
    ) -> ChatMessage | None:
        existing = self._messages.get(message_id)
        if existing is None or emoji not in existing.reactions:
            return None

        bucket = existing.reactions[emoji]
        usernames = [u for u in bucket.usernames if u != username]
        if identity is not None:
            identities = [i for i in bucket.identities if i != identity]
        else:
            identities = list(bucket.identities)

        reactions = dict(existing.reactions)
        if not usernames and not identities:
            del reactions[emoji]
        else:
            reactions[emoji] = ReactionBucket(usernames=usernames, identities=identities)
        return self.replace(message_id, reactions=reactions)
