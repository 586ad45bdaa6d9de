"""Avatar headshot lookup. Any failure means "no avatar", never a failed join."""

import asyncio
import logging

import httpx

from channelrelay.config import settings

logger = logging.getLogger(__name__)


class AvatarService:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = settings.AVATAR_API_BASE if base_url is None else base_url
        self.timeout = settings.AVATAR_LOOKUP_TIMEOUT if timeout is None else timeout
        self._transport = transport

    async def _fetch(self, identity: int) -> dict:
        params = {"userIds": identity, "size": "48x48", "format": "Png", "isCircular": "true"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.get(self.base_url, params=params)
            resp.raise_for_status()
            return resp.json()

    async def headshot_url(self, identity: int | None) -> str | None:
        if identity is None or not self.base_url:
            return None
        try:
            data = await asyncio.wait_for(self._fetch(identity), timeout=self.timeout)
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as exc:
            logger.warning("Avatar lookup for %s failed: %s", identity, exc)
            return None

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        url = items[0].get("imageUrl")
        return url if isinstance(url, str) and url else None
