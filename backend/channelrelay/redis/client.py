"""
Shared Redis connection for the seat index.

Channel sessions never touch Redis. The connection is optional: with an empty
REDIS_URL, or a server that does not answer the startup ping, get_redis()
returns None and seat lookups fall back to this process's own sockets.
"""

import logging

import redis.asyncio as aioredis

from channelrelay.config import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def init_redis() -> None:
    global _client
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set; seats are tracked per process only")
        return
    client = aioredis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
    )
    try:
        await client.ping()
    except Exception as exc:
        logger.warning("Redis at %s did not answer (%s); seats are tracked per process only", settings.REDIS_URL, exc)
        await client.aclose()
        return
    _client = client
    logger.info("Seat index shared through %s", settings.REDIS_URL)


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> aioredis.Redis | None:
    return _client


async def redis_status() -> tuple[str, str | None]:
    """("disabled" | "connected" | "disconnected", error text) for the health check."""
    if _client is None:
        return "disabled", None
    try:
        await _client.ping()
    except Exception as exc:
        return "disconnected", str(exc)
    return "connected", None
