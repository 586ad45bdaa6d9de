"""
Direct messages: point-to-point delivery reusing the room event vocabulary.

A DM thread is addressed like a channel whose id is "-" followed by the other
party's identity. The recipient's copy is filed under "-<sender>" and the
sender's echo under "-<recipient>", so each side sees the thread under the
person they are talking to. Nothing is stored: an offline recipient simply
misses the message, while the sender still gets the echo.
"""

import logging
import uuid
from datetime import datetime, timezone

from channelrelay.core import events
from channelrelay.schemas.message import ChatMessage, PrivateMessage
from channelrelay.services.ban_service import BanService
from channelrelay.websocket.manager import Connection, ConnectionManager

logger = logging.getLogger(__name__)

DM_PREFIX = "-"


def dm_channel_id(identity: int) -> str:
    return f"{DM_PREFIX}{identity}"


def parse_dm_target(channel_id: str) -> int | None:
    """The identity a "-<n>" channel id addresses, or None for a regular channel."""
    if not channel_id.startswith(DM_PREFIX):
        return None
    try:
        return int(channel_id[len(DM_PREFIX):])
    except ValueError:
        return None


class DirectMessageRouter:
    def __init__(self, manager: ConnectionManager, bans: BanService) -> None:
        self.manager = manager
        self.bans = bans

    async def route(
        self,
        sender: Connection,
        from_identity: int | None,
        from_username: str,
        to_identity: int,
        content: str,
        reply_to_id: str | None = None,
    ) -> ChatMessage | None:
        if from_identity is None:
            logger.debug("DM from %s dropped: no sender identity", from_username)
            return None
        if self.bans.is_banned(from_identity).banned:
            logger.debug("DM from banned identity %s dropped", from_identity)
            return None

        message = ChatMessage(
            id=str(uuid.uuid4()),
            channel_id=dm_channel_id(to_identity),
            username=from_username,
            identity=from_identity,
            content=content,
            timestamp=datetime.now(timezone.utc),
            reply_to_id=reply_to_id,
        )

        recipient = self.manager.connection_for_identity(to_identity)
        if recipient is not None and recipient is not sender:
            inbound = message.model_copy(update={"channel_id": dm_channel_id(from_identity)})
            await self.manager.send(recipient, {"type": events.RECEIVE_MESSAGE, **inbound.wire()})

        await self.manager.send(sender, {"type": events.RECEIVE_MESSAGE, **message.wire()})
        return message

    async def route_private(
        self,
        sender: Connection,
        from_identity: int,
        from_username: str,
        to_identity: int,
        content: str,
    ) -> PrivateMessage | None:
        """Older sendPrivateMessage path: one payload shape for both ends."""
        if self.bans.is_banned(from_identity).banned:
            logger.debug("Private message from banned identity %s dropped", from_identity)
            return None

        message = PrivateMessage(
            from_identity=from_identity,
            from_username=from_username,
            to_identity=to_identity,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )
        payload = {"type": events.RECEIVE_PRIVATE_MESSAGE, **message.wire()}

        recipient = self.manager.connection_for_identity(to_identity)
        if recipient is not None and recipient is not sender:
            await self.manager.send(recipient, payload)
        elif recipient is None:
            logger.debug("Private message target %s not connected", to_identity)

        await self.manager.send(sender, payload)
        return message
