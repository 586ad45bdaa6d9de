import json
import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    channel_id: str
    username: str
    identity: int | None = None


class Connection:
    """One accepted WebSocket and the (channel, username, identity) it joined as."""

    def __init__(self, websocket: WebSocket) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.binding: Binding | None = None
        # Survives leaving a channel (e.g. being kicked); cleared only on disconnect.
        self.identity: int | None = None
        self.closed = False

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} {self.binding}>"


def _participant_key(channel_id: str, username: str) -> tuple[str, str]:
    return channel_id, username.casefold()


class ConnectionManager:
    """Transport side of the relay: live sockets, broadcast groups, and lookups.

    Groups are keyed by channel id. Two indexes answer "which socket is this
    user on": by numeric identity (used for DMs) and by (channel, username)
    (used for kicks and reconnect detection). Both only ever point at the
    connection that bound them last; unregistering an older connection never
    clears a newer one's entry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        # channel_id -> {connection_id}
        self._groups: dict[str, set[str]] = defaultdict(set)
        self._by_identity: dict[int, str] = {}
        self._by_participant: dict[tuple[str, str], str] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, websocket: WebSocket) -> Connection:
        """Track an already-accepted WebSocket."""
        connection = Connection(websocket)
        with self._lock:
            self._connections[connection.id] = connection
        logger.info("WebSocket connected (%s)", connection.id)
        return connection

    def unregister(self, connection: Connection) -> Binding | None:
        """Forget a connection entirely. Returns the binding it held, if any."""
        connection.closed = True
        with self._lock:
            self._connections.pop(connection.id, None)
            binding = self._unbind_locked(connection)
            self._release_identity_locked(connection)
        logger.info("WebSocket disconnected (%s)", connection.id)
        return binding

    def bind(self, connection: Connection, channel_id: str, username: str, identity: int | None = None) -> None:
        """Record what a connection joined as and add it to the channel's group."""
        with self._lock:
            self._unbind_locked(connection)
            connection.binding = Binding(channel_id, username, identity)
            self._groups[channel_id].add(connection.id)
            self._by_participant[_participant_key(channel_id, username)] = connection.id
            if identity is not None:
                if connection.identity != identity:
                    self._release_identity_locked(connection)
                connection.identity = identity
                self._by_identity[identity] = connection.id

    def unbind(self, connection: Connection) -> Binding | None:
        """Drop a connection's channel binding and group membership.

        The socket stays open and stays reachable by identity.
        """
        with self._lock:
            return self._unbind_locked(connection)

    def _release_identity_locked(self, connection: Connection) -> None:
        identity = connection.identity
        if identity is not None and self._by_identity.get(identity) == connection.id:
            del self._by_identity[identity]
        connection.identity = None

    def _unbind_locked(self, connection: Connection) -> Binding | None:
        binding = connection.binding
        if binding is None:
            return None
        connection.binding = None
        members = self._groups.get(binding.channel_id)
        if members is not None:
            members.discard(connection.id)
            if not members:
                del self._groups[binding.channel_id]
        key = _participant_key(binding.channel_id, binding.username)
        if self._by_participant.get(key) == connection.id:
            del self._by_participant[key]
        return binding

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def connection_for_identity(self, identity: int) -> Connection | None:
        with self._lock:
            cid = self._by_identity.get(identity)
            return self._connections.get(cid) if cid else None

    def connection_for_participant(self, channel_id: str, username: str) -> Connection | None:
        with self._lock:
            cid = self._by_participant.get(_participant_key(channel_id, username))
            return self._connections.get(cid) if cid else None

    def group_members(self, channel_id: str) -> list[Connection]:
        with self._lock:
            return [self._connections[cid] for cid in self._groups.get(channel_id, ()) if cid in self._connections]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send(self, connection: Connection, payload: dict) -> bool:
        """Send a JSON payload to one connection. Returns False if it could not be delivered."""
        if connection.closed:
            return False
        try:
            await connection.websocket.send_text(json.dumps(payload))
            return True
        except Exception as exc:
            logger.debug("send to %s failed: %s", connection.id, exc)
            return False

    async def broadcast(self, channel_id: str, payload: dict, exclude: Connection | None = None) -> None:
        """Broadcast a JSON payload to every connection joined to a channel."""
        for connection in self.group_members(channel_id):
            if connection is exclude:
                continue
            await self.send(connection, payload)

    async def close(self, connection: Connection, code: int = 1008) -> None:
        try:
            await connection.websocket.close(code=code)
        except Exception as exc:
            logger.debug("close of %s failed: %s", connection.id, exc)
        connection.closed = True
