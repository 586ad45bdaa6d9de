"""Redis key names, prefixed with SERVER_DOMAIN so several relays can share one Redis."""

from channelrelay.config import settings


def seat_key(identity: int) -> str:
    return f"{settings.SERVER_DOMAIN}:seat:{identity}"
