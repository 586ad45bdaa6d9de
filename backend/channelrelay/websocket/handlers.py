import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from channelrelay.core import events
from channelrelay.core.groups import GroupRegistry
from channelrelay.core.registry import ChannelRegistry
from channelrelay.redis import seats
from channelrelay.schemas import payloads
from channelrelay.services.avatar_service import AvatarService
from channelrelay.services.ban_service import BanService
from channelrelay.services.game_directory import GameDirectory
from channelrelay.services.token_service import TokenService
from channelrelay.websocket.dm_router import DirectMessageRouter, parse_dm_target
from channelrelay.websocket.group_router import GroupRouter
from channelrelay.websocket.manager import Connection, ConnectionManager
from channelrelay.websocket.reconciler import PresenceReconciler

logger = logging.getLogger(__name__)

KICK_REASON = "Vote kick passed"

Handler = Callable[[Connection, Any], Awaitable[None]]


class RelayHub:
    """Everything one relay process shares, plus the inbound event table.

    Handlers resolve the target session through the registry, mutate it, and
    fan the result out through the connection manager. A handler that finds
    nothing to do (unknown channel, unauthorized edit, non-member vote) just
    returns; only joinChannel answers a refusal.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        registry: ChannelRegistry,
        reconciler: PresenceReconciler,
        dm_router: DirectMessageRouter,
        group_router: GroupRouter,
        bans: BanService,
        tokens: TokenService,
        games: GameDirectory,
    ) -> None:
        self.manager = manager
        self.registry = registry
        self.reconciler = reconciler
        self.dm_router = dm_router
        self.group_router = group_router
        self.bans = bans
        self.tokens = tokens
        self.games = games

        self._handlers: dict[str, tuple[type[BaseModel] | None, Handler]] = {
            events.JOIN_CHANNEL: (payloads.JoinChannel, self.on_join_channel),
            events.SEND_MESSAGE: (payloads.SendMessage, self.on_send_message),
            events.EDIT_MESSAGE: (payloads.EditMessage, self.on_edit_message),
            events.DELETE_MESSAGE: (payloads.DeleteMessage, self.on_delete_message),
            events.ADD_REACTION: (payloads.ReactionChange, self.on_add_reaction),
            events.REMOVE_REACTION: (payloads.ReactionChange, self.on_remove_reaction),
            events.VOTE_PIN: (payloads.VotePin, self.on_vote_pin),
            events.VOTE_KICK: (payloads.VoteKick, self.on_vote_kick),
            events.VOTE_LANGUAGE: (payloads.VoteLanguage, self.on_vote_language),
            events.NOTIFY_TYPING: (payloads.NotifyTyping, self.on_notify_typing),
            events.SEND_PRIVATE_MESSAGE: (payloads.SendPrivateMessage, self.on_send_private_message),
            events.MINT_TOKEN: (None, self.on_mint_token),
            events.UPDATE_PRESENCE: (payloads.UpdatePresence, self.on_update_presence),
            events.GET_GAMES: (None, self.on_get_games),
            events.SEARCH_USERS: (payloads.SearchUsers, self.on_search_users),
            events.PRESENCE_HEARTBEAT: (None, self.on_heartbeat),
            events.GET_GROUPS: (None, self.on_get_groups),
            events.CREATE_GROUP: (payloads.CreateGroup, self.on_create_group),
            events.SEND_GROUP_MESSAGE: (payloads.SendGroupMessage, self.on_send_group_message),
        }

    @classmethod
    def create(cls, grace_seconds: float | None = None) -> "RelayHub":
        """Wire up a hub from settings."""
        manager = ConnectionManager()
        registry = ChannelRegistry()
        bans = BanService()
        tokens = TokenService()
        reconciler = PresenceReconciler(manager, registry, bans, tokens, AvatarService(), grace_seconds)
        return cls(
            manager=manager,
            registry=registry,
            reconciler=reconciler,
            dm_router=DirectMessageRouter(manager, bans),
            group_router=GroupRouter(manager, GroupRegistry(), bans),
            bans=bans,
            tokens=tokens,
            games=GameDirectory(),
        )

    async def dispatch(self, connection: Connection, data: dict[str, Any]) -> None:
        event_type = data.get("type")
        entry = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if entry is None:
            logger.debug("Ignoring unknown event %r", event_type)
            return
        model, handler = entry
        try:
            payload = model.model_validate(data) if model is not None else None
        except ValidationError as exc:
            logger.debug("Dropping malformed %s: %s", event_type, exc.errors())
            return
        await handler(connection, payload)

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    async def on_join_channel(self, connection: Connection, p: payloads.JoinChannel) -> None:
        await self.reconciler.join(connection, p)

    async def on_update_presence(self, connection: Connection, p: payloads.UpdatePresence) -> None:
        session = self.registry.get(p.channel_id)
        if session is None or session.update_presence(p.username, p.presence()) is None:
            return
        await self.reconciler.broadcast_participants(p.channel_id)

    async def on_notify_typing(self, connection: Connection, p: payloads.NotifyTyping) -> None:
        if not self.registry.set_typing(p.channel_id, p.username, p.is_typing):
            return
        await self.reconciler.broadcast_typing(p.channel_id)

    async def on_heartbeat(self, connection: Connection, _: None) -> None:
        if connection.identity is not None:
            await seats.refresh(connection.identity)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def on_send_message(self, connection: Connection, p: payloads.SendMessage) -> None:
        target = parse_dm_target(p.channel_id)
        if target is not None:
            sender_identity = connection.identity if connection.identity is not None else p.identity
            await self.dm_router.route(connection, sender_identity, p.username, target, p.content, p.reply_to_id)
            return

        session = self.registry.get(p.channel_id)
        if session is None:
            return

        message = session.compose_message(p.username, p.content, p.identity, p.reply_to_id)
        if self.bans.is_banned(message.identity).banned:
            logger.debug("Message from banned identity %s dropped", message.identity)
            return

        author_token = p.token if self.tokens.is_token_valid(message.identity, p.token) else None
        session.append_message(message, author_token)
        await self.manager.broadcast(p.channel_id, {"type": events.RECEIVE_MESSAGE, **message.wire()})

    async def on_edit_message(self, connection: Connection, p: payloads.EditMessage) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        updated = session.edit_message(p.message_id, p.username, p.content, p.identity, p.token)
        if updated is None:
            logger.debug("Edit of %s by %s dropped", p.message_id, p.username)
            return
        await self.manager.broadcast(p.channel_id, {"type": events.MESSAGE_UPDATED, **updated.wire()})

    async def on_delete_message(self, connection: Connection, p: payloads.DeleteMessage) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        updated = session.delete_message(p.message_id, p.username, p.identity, p.token)
        if updated is None:
            logger.debug("Delete of %s by %s dropped", p.message_id, p.username)
            return
        await self.manager.broadcast(p.channel_id, {"type": events.MESSAGE_UPDATED, **updated.wire()})

    async def on_add_reaction(self, connection: Connection, p: payloads.ReactionChange) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        updated = session.add_reaction(p.message_id, p.emoji, p.username, p.identity)
        if updated is not None:
            await self.manager.broadcast(p.channel_id, {"type": events.MESSAGE_UPDATED, **updated.wire()})

    async def on_remove_reaction(self, connection: Connection, p: payloads.ReactionChange) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        updated = session.remove_reaction(p.message_id, p.emoji, p.username, p.identity)
        if updated is not None:
            await self.manager.broadcast(p.channel_id, {"type": events.MESSAGE_UPDATED, **updated.wire()})

    async def on_send_private_message(self, connection: Connection, p: payloads.SendPrivateMessage) -> None:
        sender_identity = connection.identity if connection.identity is not None else p.from_identity
        await self.dm_router.route_private(connection, sender_identity, p.from_username, p.to_identity, p.content)

    async def on_get_groups(self, connection: Connection, _: None) -> None:
        await self.group_router.list_groups(connection)

    async def on_create_group(self, connection: Connection, p: payloads.CreateGroup) -> None:
        await self.group_router.create(connection, p.participants, p.name)

    async def on_send_group_message(self, connection: Connection, p: payloads.SendGroupMessage) -> None:
        await self.group_router.send(connection, p.group_id, p.content)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def on_vote_pin(self, connection: Connection, p: payloads.VotePin) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        outcome = session.vote_pin(p.message_id, p.username)
        if outcome is None:
            return

        await self.manager.broadcast(
            p.channel_id,
            {
                "type": events.PIN_VOTE_STATE,
                "channelId": p.channel_id,
                "pinnedMessageId": outcome.pinned_message_id,
                "activePinVote": outcome.active_vote.wire() if outcome.active_vote else None,
            },
        )
        if outcome.pinned_now:
            await self.manager.broadcast(
                p.channel_id,
                {
                    "type": events.PINNED_MESSAGE_CHANGED,
                    "channelId": p.channel_id,
                    "pinnedMessageId": outcome.pinned_message_id,
                },
            )

    async def on_vote_kick(self, connection: Connection, p: payloads.VoteKick) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        outcome = session.vote_kick(p.target_username, p.username)
        if outcome is None:
            return

        await self.manager.broadcast(
            p.channel_id,
            {
                "type": events.KICK_VOTE_STATE,
                "channelId": p.channel_id,
                "activeKickVote": outcome.active_vote.wire() if outcome.active_vote else None,
            },
        )
        if outcome.kicked_now:
            await self.reconciler.expel(p.channel_id, p.target_username, KICK_REASON)

    async def on_vote_language(self, connection: Connection, p: payloads.VoteLanguage) -> None:
        session = self.registry.get(p.channel_id)
        if session is None:
            return
        result = session.vote_language(p.language_code, p.username)
        if result is None:
            return

        await self.manager.broadcast(
            p.channel_id,
            {
                "type": events.LANGUAGE_VOTE_STATE,
                "channelId": p.channel_id,
                "languageCode": result.current,
                "votes": result.tally,
            },
        )
        if result.changed_now:
            await self.manager.broadcast(
                p.channel_id,
                {"type": events.LANGUAGE_CHANGED, "channelId": p.channel_id, "languageCode": result.current},
            )

    # ------------------------------------------------------------------
    # Tokens, discovery, search
    # ------------------------------------------------------------------

    async def on_mint_token(self, connection: Connection, _: None) -> None:
        identity = connection.identity
        if identity is None:
            return
        ban = self.bans.is_banned(identity)
        if ban.banned:
            await self.manager.send(
                connection,
                {"type": events.BANNED, "identity": identity, "reason": ban.reason, "appealUrl": ban.appeal_url},
            )
            await self.manager.close(connection, code=1008)
            return
        token = self.tokens.get_or_create_token(identity)
        await self.manager.send(connection, {"type": events.TOKEN_MINTED, "identity": identity, "token": token})

    async def on_get_games(self, connection: Connection, _: None) -> None:
        groups = await self.games.enrich(self.registry.list_groups())
        await self.manager.send(connection, {"type": events.GAMES_LIST, "games": [g.wire() for g in groups]})

    async def on_search_users(self, connection: Connection, p: payloads.SearchUsers) -> None:
        current = connection.binding.channel_id if connection.binding else None
        results = self.registry.search_users(p.query, current)
        located = await seats.locate(self.manager, [r.identity for r in results if r.identity is not None])
        for r in results:
            if r.identity is not None:
                r.online = located.get(r.identity) is not None
            else:
                r.online = self.manager.connection_for_participant(r.channel_id, r.username) is not None
        await self.manager.send(connection, {"type": events.SEARCH_RESULTS, "results": [r.wire() for r in results]})


async def relay_ws_handler(websocket: WebSocket, hub: RelayHub) -> None:
    """Full lifecycle handler for one relay WebSocket connection."""
    await websocket.accept()
    connection = hub.manager.register(websocket)

    try:
        while not connection.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                # binary frames carry no events
                continue
            try:
                data: dict[str, Any] = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue

            try:
                await hub.dispatch(connection, data)
            except Exception as exc:
                logger.error(
                    "Error handling event %r on connection %s: %s", data.get("type"), connection.id, exc, exc_info=True
                )
    except WebSocketDisconnect:
        logger.debug("Connection %s closed by client", connection.id)
    finally:
        await hub.reconciler.disconnect(connection)
