"""
Presence reconciler: join, channel switch, and disconnect grace.

Per connection:  Unbound -> Joined -> (Joined on another channel) -> GraceDeparted
                 GraceDeparted -> Joined   (same channel/username rejoins in time)
                 GraceDeparted -> Removed  (grace period runs out)

A dropped socket never removes its participant straight away. A departure task
is parked under (channel, username) and only removes the participant once
the grace period passes with no rejoin. A second drop for the same key
restarts the wait instead of stacking another task.
"""

import asyncio
import logging

from channelrelay.config import settings
from channelrelay.core import events
from channelrelay.core.registry import ChannelRegistry
from channelrelay.core.session import ChannelSession
from channelrelay.redis import seats
from channelrelay.schemas.payloads import JoinChannel
from channelrelay.services.avatar_service import AvatarService
from channelrelay.services.ban_service import BanService
from channelrelay.services.token_service import TokenService
from channelrelay.websocket.manager import Binding, Connection, ConnectionManager

logger = logging.getLogger(__name__)


def _grace_key(channel_id: str, username: str) -> tuple[str, str]:
    return channel_id, username.casefold()


class PresenceReconciler:
    def __init__(
        self,
        manager: ConnectionManager,
        registry: ChannelRegistry,
        bans: BanService,
        tokens: TokenService,
        avatars: AvatarService,
        grace_seconds: float | None = None,
    ) -> None:
        self.manager = manager
        self.registry = registry
        self.bans = bans
        self.tokens = tokens
        self.avatars = avatars
        self.grace_seconds = settings.DISCONNECT_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self._pending: dict[tuple[str, str], asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Room-wide notifications
    # ------------------------------------------------------------------

    async def broadcast_participants(self, channel_id: str) -> None:
        await self.manager.broadcast(
            channel_id,
            {
                "type": events.PARTICIPANTS_CHANGED,
                "channelId": channel_id,
                "participants": [p.wire() for p in self.registry.participants(channel_id)],
            },
        )

    async def broadcast_typing(self, channel_id: str) -> None:
        await self.manager.broadcast(
            channel_id,
            {
                "type": events.TYPING_INDICATOR,
                "channelId": channel_id,
                "usernames": self.registry.typing_usernames(channel_id),
            },
        )

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    async def _reject(self, connection: Connection, payload: dict) -> None:
        await self.manager.send(connection, payload)
        await self.manager.close(connection, code=1008)

    async def authorize(self, connection: Connection, request: JoinChannel) -> bool:
        """Ban and token checks. On refusal the actor is told why and the socket is closed."""
        ban = self.bans.is_banned(request.identity)
        if ban.banned:
            logger.info("Rejected join of %s to %s: banned", request.identity, request.channel_id)
            await self._reject(
                connection,
                {
                    "type": events.BANNED,
                    "identity": request.identity,
                    "reason": ban.reason,
                    "appealUrl": ban.appeal_url,
                },
            )
            return False

        if request.identity is not None and request.token:
            expected = self.tokens.get_token(request.identity)
            if expected and not self.tokens.is_token_valid(request.identity, request.token):
                logger.info("Rejected join of %s to %s: invalid token", request.identity, request.channel_id)
                await self._reject(
                    connection,
                    {"type": events.AUTH_FAILED, "identity": request.identity, "reason": "Invalid token"},
                )
                return False
        return True

    async def join(self, connection: Connection, request: JoinChannel) -> ChannelSession | None:
        if not await self.authorize(connection, request):
            return None

        await self._leave_previous(connection, request.channel_id, request.username)
        rejoined = self._cancel_departure(request.channel_id, request.username)

        avatar_url = await self.avatars.headshot_url(request.identity)

        if connection.closed:
            # The socket went away while the avatar lookup was in flight.
            logger.debug("Join of %s to %s abandoned: connection closed", request.username, request.channel_id)
            if rejoined:
                self.schedule_departure(Binding(request.channel_id, request.username, request.identity))
            return None

        session = self.registry.get_or_create(
            request.channel_id,
            request.username,
            identity=request.identity,
            avatar_url=avatar_url,
            group_id=request.group_id,
            presence=request.presence(),
        )
        self.manager.bind(connection, session.channel_id, request.username, request.identity)
        if request.identity is not None:
            await seats.record(request.identity, session.channel_id)
        logger.info("%s joined channel %s%s", request.username, session.channel_id, " (rejoin)" if rejoined else "")

        await self.manager.send(connection, {"type": events.CHANNEL_SNAPSHOT, **session.snapshot().wire()})
        await self.broadcast_participants(session.channel_id)
        return session

    async def _leave_previous(self, connection: Connection, channel_id: str, username: str) -> None:
        previous = connection.binding
        if previous is None:
            return
        if previous.channel_id == channel_id and previous.username.casefold() == username.casefold():
            return

        self.manager.unbind(connection)
        self.registry.remove_participant(previous.channel_id, previous.username)
        logger.info("%s switched from channel %s to %s", previous.username, previous.channel_id, channel_id)
        await self.broadcast_participants(previous.channel_id)
        await self.broadcast_typing(previous.channel_id)

    # ------------------------------------------------------------------
    # Disconnect grace
    # ------------------------------------------------------------------

    def pending_departures(self) -> list[tuple[str, str]]:
        return list(self._pending)

    def _cancel_departure(self, channel_id: str, username: str) -> bool:
        task = self._pending.pop(_grace_key(channel_id, username), None)
        if task is None:
            return False
        task.cancel()
        return True

    def schedule_departure(self, binding: Binding) -> None:
        key = _grace_key(binding.channel_id, binding.username)
        self._cancel_departure(binding.channel_id, binding.username)
        self._pending[key] = asyncio.create_task(self._depart_after_grace(key, binding))

    async def _depart_after_grace(self, key: tuple[str, str], binding: Binding) -> None:
        await asyncio.sleep(self.grace_seconds)
        if self._pending.get(key) is not asyncio.current_task():
            return
        del self._pending[key]
        try:
            await self.depart(binding)
        except Exception as exc:
            logger.error("Departure of %s from %s failed: %s", binding.username, binding.channel_id, exc, exc_info=True)

    async def shutdown(self) -> None:
        """Drop every pending departure without running it."""
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Cancelled %d pending departures", len(tasks))

    async def disconnect(self, connection: Connection) -> None:
        """Socket closed. Unbound connections (never joined, or mid-join) are a no-op."""
        binding = self.manager.unregister(connection)
        if binding is None:
            return
        if binding.identity is not None and self.manager.connection_for_identity(binding.identity) is None:
            await seats.release(binding.identity, binding.channel_id)
        if self.manager.connection_for_participant(binding.channel_id, binding.username) is not None:
            # Already back on a newer socket.
            return
        self.schedule_departure(binding)

    async def depart(self, binding: Binding) -> None:
        removed = self.registry.remove_participant(binding.channel_id, binding.username)
        if removed is None:
            return
        logger.info("%s left channel %s", binding.username, binding.channel_id)
        await self.broadcast_participants(binding.channel_id)
        await self.broadcast_typing(binding.channel_id)

    # ------------------------------------------------------------------
    # Forced removal
    # ------------------------------------------------------------------

    async def expel(self, channel_id: str, username: str, reason: str) -> None:
        """Tell a vote-kicked participant and detach their socket from the room.

        The participant has already been removed from the session.
        """
        self._cancel_departure(channel_id, username)
        target = self.manager.connection_for_participant(channel_id, username)
        if target is not None:
            await self.manager.send(target, {"type": events.KICKED, "channelId": channel_id, "reason": reason})
            binding = self.manager.unbind(target)
            if binding is not None and binding.identity is not None:
                await seats.release(binding.identity, channel_id)
        await self.broadcast_participants(channel_id)
        await self.broadcast_typing(channel_id)
