"""
Channel registry: channel id -> ChannelSession, created on first join or REST create.

The registry lock only guards the id map itself and is released before any
session is touched; sessions serialize their own mutations. Sessions are
never torn down, an abandoned one lives until the process restarts.
"""

import logging
import threading

from channelrelay.config import settings
from channelrelay.core.session import ChannelSession
from channelrelay.schemas.channel import GameGroup, SessionSummary
from channelrelay.schemas.participant import Participant, PresenceInfo, UserSearchResult

logger = logging.getLogger(__name__)


class ChannelRegistry:
    def __init__(self, history_limit: int | None = None, default_language: str | None = None) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, ChannelSession] = {}
        self._history_limit = history_limit
        self._default_language = default_language

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._channels

    def sessions(self) -> list[ChannelSession]:
        with self._lock:
            return list(self._channels.values())

    def get(self, channel_id: str) -> ChannelSession | None:
        with self._lock:
            return self._channels.get(channel_id)

    def ensure(self, channel_id: str, created_by: str, group_id: int | None = None) -> tuple[ChannelSession, bool]:
        """Resolve the session, creating an empty one for an unseen id. Returns (session, created)."""
        created = False
        with self._lock:
            session = self._channels.get(channel_id)
            if session is None:
                session = ChannelSession(
                    channel_id,
                    created_by=created_by,
                    group_id=group_id,
                    history_limit=self._history_limit,
                    default_language=self._default_language,
                )
                self._channels[channel_id] = session
                created = True
                logger.info("Channel %s created by %s (group %s)", channel_id, created_by, group_id)
        session.assign_group(group_id)
        return session, created

    def get_or_create(
        self,
        channel_id: str,
        username: str,
        identity: int | None = None,
        avatar_url: str | None = None,
        group_id: int | None = None,
        presence: PresenceInfo | None = None,
    ) -> ChannelSession:
        """Resolve the session (creating it for an unseen id) and upsert the joining participant."""
        session, _ = self.ensure(channel_id, username, group_id)
        session.add_participant(username, identity, avatar_url, presence)
        return session

    # ------------------------------------------------------------------
    # Pass-throughs used by the presence reconciler
    # ------------------------------------------------------------------

    def remove_participant(self, channel_id: str, username: str) -> Participant | None:
        session = self.get(channel_id)
        if session is None:
            return None
        return session.remove_participant(username)

    def set_typing(self, channel_id: str, username: str, is_typing: bool) -> bool:
        session = self.get(channel_id)
        if session is None:
            return False
        return session.set_typing(username, is_typing)

    def participants(self, channel_id: str) -> list[Participant]:
        session = self.get(channel_id)
        return session.participants() if session else []

    def typing_usernames(self, channel_id: str) -> list[str]:
        session = self.get(channel_id)
        return session.typing_usernames() if session else []

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def list_groups(self, sample_avatars: int | None = None) -> list[GameGroup]:
        """Fold every session that declares a group id into per-group summaries.

        Groups are ordered by how many sessions they hold, busiest first.
        """
        limit = settings.DISCOVERY_SAMPLE_AVATARS if sample_avatars is None else sample_avatars
        groups: dict[int, GameGroup] = {}
        for session in self.sessions():
            group_id = session.group_id
            if group_id is None:
                continue
            participants = session.participants()
            group = groups.get(group_id)
            if group is None:
                group = GameGroup(group_id=group_id, session_count=0, total_participants=0, sessions=[])
                groups[group_id] = group
            group.session_count += 1
            group.total_participants += len(participants)
            group.sessions.append(
                SessionSummary(
                    channel_id=session.channel_id,
                    participant_count=len(participants),
                    avatar_urls=[p.avatar_url for p in participants if p.avatar_url][:limit],
                )
            )
        return sorted(groups.values(), key=lambda g: g.session_count, reverse=True)

    def search_users(
        self,
        query: str,
        current_channel_id: str | None = None,
        limit: int | None = None,
    ) -> list[UserSearchResult]:
        """Participants whose username contains the query, case-insensitively.

        Matches in the caller's own channel come first. A user present in several
        channels is reported once, by identity when known, else by username.
        """
        needle = (query or "").strip().casefold()
        if not needle:
            return []
        limit = settings.SEARCH_RESULT_LIMIT if limit is None else limit

        sessions = self.sessions()
        sessions.sort(key=lambda s: s.channel_id != current_channel_id)

        seen: set[object] = set()
        results: list[UserSearchResult] = []
        for session in sessions:
            for participant in session.participants():
                if needle not in participant.username.casefold():
                    continue
                key = participant.identity if participant.identity is not None else participant.username.casefold()
                if key in seen:
                    continue
                seen.add(key)
                results.append(
                    UserSearchResult(
                        username=participant.username,
                        identity=participant.identity,
                        avatar_url=participant.avatar_url,
                        channel_id=session.channel_id,
                    )
                )
                if len(results) >= limit:
                    return results
        return results
