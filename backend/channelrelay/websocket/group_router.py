"""
Group DM delivery.

The sender is whoever the connection joined as: a socket that has not joined
a channel with an identity cannot create or post to groups. Every member
reachable on this relay gets each event, the sender included.
"""

import logging

from channelrelay.core import events
from channelrelay.core.groups import GroupRegistry
from channelrelay.schemas.group import ChatGroup, GroupMessage
from channelrelay.services.ban_service import BanService
from channelrelay.websocket.manager import Connection, ConnectionManager

logger = logging.getLogger(__name__)


class GroupRouter:
    def __init__(self, manager: ConnectionManager, groups: GroupRegistry, bans: BanService) -> None:
        self.manager = manager
        self.groups = groups
        self.bans = bans

    def _sender(self, connection: Connection) -> tuple[int, str] | None:
        binding = connection.binding
        if connection.identity is None or binding is None:
            return None
        if self.bans.is_banned(connection.identity).banned:
            logger.debug("Group traffic from banned identity %s dropped", connection.identity)
            return None
        return connection.identity, binding.username

    async def _fan_out(self, group: ChatGroup, payload: dict) -> int:
        delivered = 0
        for identity in group.members:
            conn = self.manager.connection_for_identity(identity)
            if conn is not None and await self.manager.send(conn, payload):
                delivered += 1
        return delivered

    async def list_groups(self, connection: Connection) -> list[ChatGroup] | None:
        if connection.identity is None:
            return None
        groups = self.groups.groups_for(connection.identity)
        await self.manager.send(connection, {"type": events.USER_GROUPS, "groups": [g.wire() for g in groups]})
        return groups

    async def create(self, connection: Connection, members: list[int], name: str | None = None) -> ChatGroup | None:
        sender = self._sender(connection)
        if sender is None:
            return None
        group = self.groups.create(sender[0], members, name)
        await self._fan_out(group, {"type": events.GROUP_CREATED, **group.wire()})
        return group

    async def send(self, connection: Connection, group_id: str, content: str) -> GroupMessage | None:
        sender = self._sender(connection)
        if sender is None:
            return None
        composed = self.groups.compose_message(group_id, sender[0], sender[1], content)
        if composed is None:
            logger.debug("Group message from %s to %s dropped", sender[0], group_id)
            return None
        group, message = composed
        delivered = await self._fan_out(group, {"type": events.RECEIVE_GROUP_MESSAGE, **message.wire()})
        logger.debug("Group message %s delivered to %d of %d members", message.id, delivered, len(group.members))
        return message
