"""
Channel views for dashboards and the game browser, plus room creation.

POST /api/channels opens a room ahead of the first joinChannel but seats no
one: a participant is always tied to a live socket, so it only appears once
that socket joins.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import Field

from channelrelay.api.deps import get_hub, require_channel
from channelrelay.core.session import ChannelSession
from channelrelay.schemas.base import WireModel
from channelrelay.schemas.channel import ChannelSnapshot, GameGroup
from channelrelay.websocket.handlers import RelayHub

router = APIRouter(tags=["channels"])


class CreateChannelRequest(WireModel):
    channel_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    identity: int | None = None
    group_id: int | None = None


@router.post("/channels", response_model=ChannelSnapshot, response_model_by_alias=True)
async def create_channel(
    body: CreateChannelRequest,
    response: Response,
    hub: RelayHub = Depends(get_hub),
) -> ChannelSnapshot:
    """Create the room for a game-server instance, or return it if it already exists."""
    ban = hub.bans.is_banned(body.identity)
    if ban.banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ban.reason)
    session, created = hub.registry.ensure(body.channel_id, body.username, body.group_id)
    if created:
        response.status_code = status.HTTP_201_CREATED
    return session.snapshot()


@router.get("/channels/{channel_id}", response_model=ChannelSnapshot, response_model_by_alias=True)
async def get_channel(session: ChannelSession = Depends(require_channel)) -> ChannelSnapshot:
    return session.snapshot()


@router.get("/games", response_model=list[GameGroup], response_model_by_alias=True)
async def list_games(hub: RelayHub = Depends(get_hub)) -> list[GameGroup]:
    """Live sessions grouped by game, busiest first, with names and icons where available."""
    return await hub.games.enrich(hub.registry.list_groups())
