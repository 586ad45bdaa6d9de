"""
Game metadata for the discovery list.

Given the aggregated groups from the registry, fills in a display name and an
icon URL per group id:

  1. one thumbnail call for every group id at once
  2. one place -> universe call per group id, concurrently
  3. one game-info call for every universe id found

Each step that fails just leaves its fields empty. Every group ends up with
at least the fallback name "Game <id>".
"""

import asyncio
import logging

import httpx

from channelrelay.config import settings
from channelrelay.schemas.channel import GameGroup

logger = logging.getLogger(__name__)


def _as_id(value) -> int | None:
    """Upstream ids arrive as ints or numeric strings; anything else is skipped."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _items(data: dict | None) -> list[dict]:
    items = (data or {}).get("data")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class GameDirectory:
    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = settings.GAME_LOOKUP_TIMEOUT if timeout is None else timeout
        self._transport = transport

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: dict | None = None) -> dict | None:
        try:
            resp = await asyncio.wait_for(client.get(url, params=params), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as exc:
            logger.warning("Game lookup %s failed: %s", url, exc)
            return None
        return data if isinstance(data, dict) else None

    async def _thumbnails(self, client: httpx.AsyncClient, group_ids: list[int]) -> dict[int, str]:
        if not settings.GAME_THUMBNAIL_API:
            return {}
        data = await self._get_json(
            client,
            settings.GAME_THUMBNAIL_API,
            {
                "placeIds": ",".join(str(g) for g in group_ids),
                "returnPolicy": "PlaceHolder",
                "size": "150x150",
                "format": "Png",
                "isCircular": "false",
            },
        )
        out: dict[int, str] = {}
        for item in _items(data):
            target = _as_id(item.get("targetId"))
            image = item.get("imageUrl")
            if target is not None and isinstance(image, str) and image:
                out[target] = image
        return out

    async def _universe(self, client: httpx.AsyncClient, group_id: int) -> tuple[int, int] | None:
        data = await self._get_json(client, f"{settings.GAME_UNIVERSE_API}/{group_id}/universe")
        universe_id = _as_id((data or {}).get("universeId"))
        if universe_id is None:
            return None
        return group_id, universe_id

    async def _names(self, client: httpx.AsyncClient, group_ids: list[int]) -> dict[int, str]:
        if not (settings.GAME_UNIVERSE_API and settings.GAME_INFO_API):
            return {}
        mappings = [m for m in await asyncio.gather(*(self._universe(client, g) for g in group_ids)) if m]
        if not mappings:
            return {}

        universe_ids = sorted({u for _, u in mappings})
        data = await self._get_json(
            client, settings.GAME_INFO_API, {"universeIds": ",".join(str(u) for u in universe_ids)}
        )
        names_by_universe: dict[int, str] = {}
        for info in _items(data):
            universe_id = _as_id(info.get("id"))
            name = info.get("name")
            if universe_id is not None and isinstance(name, str) and name:
                names_by_universe[universe_id] = name
        return {g: names_by_universe[u] for g, u in mappings if u in names_by_universe}

    async def enrich(self, groups: list[GameGroup]) -> list[GameGroup]:
        group_ids = sorted({g.group_id for g in groups})
        images: dict[int, str] = {}
        names: dict[int, str] = {}
        if group_ids:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                images, names = await asyncio.gather(
                    self._thumbnails(client, group_ids),
                    self._names(client, group_ids),
                )

        for group in groups:
            group.image_url = images.get(group.group_id, group.image_url)
            group.name = names.get(group.group_id) or group.name or f"Game {group.group_id}"
        return groups
