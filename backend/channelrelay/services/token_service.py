"""
Bearer tokens: one opaque token per numeric identity, minted on demand.

Stored as {"tokensByUserId": {"<identity>": "<token>"}} in a JSON file.
A token is never rotated once minted. Write failures are logged and the
in-memory copy stays authoritative for the life of the process.
"""

import json
import logging
import secrets
import threading
from pathlib import Path

from channelrelay.config import settings

logger = logging.getLogger(__name__)


class TokenService:
    def __init__(self, path: str | None = None) -> None:
        self.path = Path(path or settings.TOKEN_STORE_PATH)
        self._lock = threading.Lock()
        self._tokens: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8")) or {}
            self._tokens = {str(k): str(v) for k, v in (data.get("tokensByUserId") or {}).items()}
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Token store %s unreadable, starting empty: %s", self.path, exc)
            self._tokens = {}

    def _save(self) -> None:
        try:
            self.path.write_text(json.dumps({"tokensByUserId": self._tokens}, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Token store %s not written: %s", self.path, exc)

    def get_token(self, identity: int) -> str | None:
        return self._tokens.get(str(identity))

    def is_token_valid(self, identity: int | None, token: str | None) -> bool:
        if identity is None or not token:
            return False
        expected = self.get_token(identity)
        return expected is not None and secrets.compare_digest(expected, token)

    def get_or_create_token(self, identity: int) -> str:
        with self._lock:
            existing = self._tokens.get(str(identity))
            if existing:
                return existing
            token = secrets.token_urlsafe(24)
            self._tokens[str(identity)] = token
            self._save()
            logger.info("Minted token for identity %s", identity)
            return token
