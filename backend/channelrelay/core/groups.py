"""
Group DMs: small named threads between identities.

Groups live in memory for the life of the process, like channel sessions.
Membership is fixed at creation. Messages are relayed, never stored: a
member who is offline when a message goes out does not get it later.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone

from channelrelay.config import settings
from channelrelay.schemas.group import ChatGroup, GroupMessage

logger = logging.getLogger(__name__)


class GroupRegistry:
    def __init__(self, max_members: int | None = None) -> None:
        self._lock = threading.Lock()
        self._groups: dict[str, ChatGroup] = {}
        self._max_members = max_members if max_members is not None else settings.GROUP_MAX_MEMBERS

    def __len__(self) -> int:
        with self._lock:
            return len(self._groups)

    def create(self, owner_identity: int, members: list[int], name: str | None = None) -> ChatGroup:
        """Owner first, then the listed identities in order, duplicates dropped.

        Identities past the member cap are left out.
        """
        roster = [owner_identity]
        for identity in members:
            if identity not in roster:
                roster.append(identity)
        roster = roster[: self._max_members]

        group = ChatGroup(
            id=str(uuid.uuid4()),
            name=(name or "").strip() or None,
            owner_identity=owner_identity,
            members=roster,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._groups[group.id] = group
        logger.info("Group %s created by %s with %d members", group.id, owner_identity, len(roster))
        return group

    def get(self, group_id: str) -> ChatGroup | None:
        with self._lock:
            return self._groups.get(group_id)

    def groups_for(self, identity: int) -> list[ChatGroup]:
        """Groups the identity belongs to, oldest first."""
        with self._lock:
            return [g for g in self._groups.values() if identity in g.members]

    def compose_message(
        self, group_id: str, from_identity: int, from_username: str, content: str
    ) -> tuple[ChatGroup, GroupMessage] | None:
        """None for an unknown group or a sender who is not a member."""
        group = self.get(group_id)
        if group is None or from_identity not in group.members:
            return None
        message = GroupMessage(
            id=str(uuid.uuid4()),
            group_id=group_id,
            from_identity=from_identity,
            from_username=from_username,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )
        return group, message
