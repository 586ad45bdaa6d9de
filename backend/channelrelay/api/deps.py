from fastapi import HTTPException, Request, status

from channelrelay.core.session import ChannelSession
from channelrelay.websocket.handlers import RelayHub


def get_hub(request: Request) -> RelayHub:
    """The RelayHub built by the app lifespan."""
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Relay not started")
    return hub


def require_channel(channel_id: str, request: Request) -> ChannelSession:
    """Resolve a live channel session or 404. Never creates one."""
    session = get_hub(request).registry.get(channel_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return session
