"""
Ban list, read from a JSON file owned by the operator.

File shape:
  {"appealUrl": "...", "bannedUserIds": [1, 2], "reasonsByUserId": {"1": "spam"}}

A missing or unreadable file means nobody is banned. Call load() again to
pick up edits without restarting.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from channelrelay.config import settings

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Banned"


@dataclass(frozen=True)
class BanStatus:
    banned: bool
    reason: str | None = None
    appeal_url: str | None = None


class BanService:
    def __init__(self, path: str | None = None) -> None:
        self.path = Path(path or settings.BAN_LIST_PATH)
        self._banned: set[int] = set()
        self._reasons: dict[str, str] = {}
        self._appeal_url: str | None = None
        self.load()

    def load(self) -> None:
        self._banned, self._reasons, self._appeal_url = set(), {}, None
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8")) or {}
            self._banned = {int(uid) for uid in data.get("bannedUserIds") or []}
            self._reasons = {str(k): str(v) for k, v in (data.get("reasonsByUserId") or {}).items()}
            self._appeal_url = data.get("appealUrl")
            logger.info("Loaded %d bans from %s", len(self._banned), self.path)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ban list %s unreadable, treating as empty: %s", self.path, exc)
            self._banned, self._reasons, self._appeal_url = set(), {}, None

    def is_banned(self, identity: int | None) -> BanStatus:
        if identity is None or identity not in self._banned:
            return BanStatus(banned=False)
        return BanStatus(
            banned=True,
            reason=self._reasons.get(str(identity), DEFAULT_REASON),
            appeal_url=self._appeal_url,
        )
