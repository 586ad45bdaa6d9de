from fastapi import APIRouter, Depends

from channelrelay.api.deps import get_hub
from channelrelay.redis.client import redis_status
from channelrelay.websocket.handlers import RelayHub

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(hub: RelayHub = Depends(get_hub)) -> dict:
    state, error = await redis_status()
    result = {"status": "healthy", "channels": len(hub.registry), "redis": state}
    if error:
        result["error"] = error
    return result
