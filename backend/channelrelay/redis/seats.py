"""
Seat index: which channel an identity is sitting in right now.

  {SERVER_DOMAIN}:seat:{identity}  ->  channel id   (TTL REDIS_SEAT_TTL)

A seat is written when a join completes and released the moment the socket
drops, so someone still inside the disconnect grace window shows up in their
room's participant list but reads as unreachable. presence.heartbeat frames
keep the TTL alive.

Every relay pointed at the same Redis sees every other relay's seats. With no
Redis, only this process's own sockets can be located.
"""

import logging

from channelrelay.config import settings
from channelrelay.redis.client import get_redis
from channelrelay.redis.keys import seat_key
from channelrelay.websocket.manager import ConnectionManager

logger = logging.getLogger(__name__)


async def record(identity: int, channel_id: str) -> None:
    r = get_redis()
    if r is None:
        return
    try:
        await r.set(seat_key(identity), channel_id, ex=settings.REDIS_SEAT_TTL)
    except Exception as exc:
        logger.warning("Recording seat of %s in %s failed: %s", identity, channel_id, exc)


async def release(identity: int, channel_id: str) -> None:
    """Forget the seat, unless the identity has sat down in another channel since."""
    r = get_redis()
    if r is None:
        return
    key = seat_key(identity)
    try:
        if await r.get(key) == channel_id:
            await r.delete(key)
    except Exception as exc:
        logger.warning("Releasing seat of %s in %s failed: %s", identity, channel_id, exc)


async def refresh(identity: int) -> None:
    """Extend the TTL of an existing seat. An expired seat stays gone until the next join."""
    r = get_redis()
    if r is None:
        return
    try:
        await r.expire(seat_key(identity), settings.REDIS_SEAT_TTL)
    except Exception as exc:
        logger.warning("Refreshing seat of %s failed: %s", identity, exc)


async def lookup(identities: list[int]) -> dict[int, str]:
    """Seats recorded in Redis. Identities without one are left out."""
    r = get_redis()
    if r is None or not identities:
        return {}
    try:
        values = await r.mget([seat_key(i) for i in identities])
    except Exception as exc:
        logger.warning("Seat lookup failed: %s", exc)
        return {}
    return {i: v for i, v in zip(identities, values) if v}


async def locate(manager: ConnectionManager, identities: list[int]) -> dict[int, str | None]:
    """Channel each identity is seated in, or None when it cannot be reached.

    Sockets held by this process answer first; Redis covers the rest.
    """
    found: dict[int, str | None] = {}
    remote: list[int] = []
    for identity in identities:
        conn = manager.connection_for_identity(identity)
        if conn is not None and conn.binding is not None:
            found[identity] = conn.binding.channel_id
        elif identity not in remote:
            remote.append(identity)

    seats = await lookup(remote)
    for identity in remote:
        found[identity] = seats.get(identity)
    return found
