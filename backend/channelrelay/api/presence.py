"""
Where identities are seated right now.

GET /api/presence/bulk?ids=1,2,3   several identities at once
GET /api/presence/{identity}       one identity

An identity is "online" while it holds a seat: joined a channel through a
socket that is still open, on this relay or on any other one sharing Redis.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from channelrelay.api.deps import get_hub
from channelrelay.redis import seats
from channelrelay.schemas.base import WireModel
from channelrelay.websocket.handlers import RelayHub

router = APIRouter(prefix="/presence", tags=["presence"])

MAX_BULK_IDS = 200
ONLINE = "online"
OFFLINE = "offline"


class SeatResponse(WireModel):
    identity: int
    status: str
    channel_id: str | None = None


class BulkSeatResponse(WireModel):
    statuses: dict[int, str]
    channels: dict[int, str]


@router.get("/bulk", response_model=BulkSeatResponse)
async def get_bulk_presence(
    ids: str = Query(..., description="Comma-separated identities, e.g. 1,2,3"),
    hub: RelayHub = Depends(get_hub),
):
    try:
        identities = [int(i.strip()) for i in ids.split(",") if i.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail="ids must be comma-separated integers") from None
    if len(identities) > MAX_BULK_IDS:
        raise HTTPException(status_code=400, detail=f"Too many ids (max {MAX_BULK_IDS})")

    located = await seats.locate(hub.manager, identities)
    return BulkSeatResponse(
        statuses={i: ONLINE if c else OFFLINE for i, c in located.items()},
        channels={i: c for i, c in located.items() if c},
    )


@router.get("/{identity}", response_model=SeatResponse)
async def get_presence(identity: int, hub: RelayHub = Depends(get_hub)):
    channel_id = (await seats.locate(hub.manager, [identity]))[identity]
    return SeatResponse(identity=identity, status=ONLINE if channel_id else OFFLINE, channel_id=channel_id)
