"""Test doubles shared by the unit and end-to-end tests."""

import json
from datetime import datetime, timezone

from channelrelay.core.groups import GroupRegistry
from channelrelay.core.registry import ChannelRegistry
from channelrelay.schemas.message import ChatMessage
from channelrelay.services.avatar_service import AvatarService
from channelrelay.services.ban_service import BanService
from channelrelay.services.game_directory import GameDirectory
from channelrelay.services.token_service import TokenService
from channelrelay.websocket.dm_router import DirectMessageRouter
from channelrelay.websocket.group_router import GroupRouter
from channelrelay.websocket.handlers import RelayHub
from channelrelay.websocket.manager import ConnectionManager
from channelrelay.websocket.reconciler import PresenceReconciler


class FakeWebSocket:
    """Records every frame sent to it instead of writing to a socket."""

    def __init__(self):
        self.sent: list[dict] = []
        self.close_code: int | None = None

    async def send_text(self, text: str):
        if self.close_code is not None:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000):
        self.close_code = code

    def of_type(self, event_type: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == event_type]

    def last(self, event_type: str) -> dict:
        frames = self.of_type(event_type)
        assert frames, f"no {event_type} frame in {[m['type'] for m in self.sent]}"
        return frames[-1]


class FakeAvatars(AvatarService):
    """Avatar lookup that answers from a dict, optionally running a hook first."""

    def __init__(self, urls: dict[int, str] | None = None, before=None):
        super().__init__(base_url="")
        self.urls = urls or {}
        self.before = before

    async def headshot_url(self, identity):
        if self.before is not None:
            await self.before(identity)
        return self.urls.get(identity)


def make_hub(tmp_path, grace_seconds: float = 0.05, avatars: AvatarService | None = None) -> RelayHub:
    manager = ConnectionManager()
    registry = ChannelRegistry()
    bans = BanService(str(tmp_path / "bans.json"))
    tokens = TokenService(str(tmp_path / "tokens.json"))
    reconciler = PresenceReconciler(
        manager, registry, bans, tokens, avatars or AvatarService(base_url=""), grace_seconds=grace_seconds
    )
    return RelayHub(
        manager=manager,
        registry=registry,
        reconciler=reconciler,
        dm_router=DirectMessageRouter(manager, bans),
        group_router=GroupRouter(manager, GroupRegistry(), bans),
        bans=bans,
        tokens=tokens,
        games=GameDirectory(),
    )


def write_bans(tmp_path, banned: list[int], reasons: dict | None = None, appeal_url: str | None = None):
    data = {"bannedUserIds": banned, "reasonsByUserId": reasons or {}}
    if appeal_url:
        data["appealUrl"] = appeal_url
    (tmp_path / "bans.json").write_text(json.dumps(data))


def make_message(message_id: str, content: str = "hi", username: str = "alice", identity: int | None = None):
    return ChatMessage(
        id=message_id,
        channel_id="J1",
        username=username,
        identity=identity,
        content=content,
        timestamp=datetime.now(timezone.utc),
    )


def join_frame(channel_id: str, username: str, identity: int | None = None, **extra) -> dict:
    frame = {"type": "joinChannel", "channelId": channel_id, "username": username}
    if identity is not None:
        frame["identity"] = identity
    frame.update(extra)
    return frame

