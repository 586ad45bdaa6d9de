"""
Tests for the Redis seat index and the /api/presence views built on it.

Redis is replaced by a small dict-backed stand-in that only implements the
commands the seat index sends (set/get/mget/delete/expire).
"""

import pytest

import channelrelay.redis.seats as seats
from channelrelay.tests.helpers import FakeWebSocket, join_frame, make_hub


class MemoryRedis:
    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.commands: list[str] = []

    async def set(self, key: str, value: str, ex: int | None = None):
        self.commands.append("set")
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key: str):
        self.commands.append("get")
        return self.values.get(key)

    async def mget(self, keys: list[str]):
        self.commands.append("mget")
        return [self.values.get(k) for k in keys]

    async def delete(self, key: str):
        self.commands.append("delete")
        self.ttls.pop(key, None)
        return 1 if self.values.pop(key, None) is not None else 0

    async def expire(self, key: str, ttl: int):
        self.commands.append("expire")
        if key not in self.values:
            return False
        self.ttls[key] = ttl
        return True


class UnreachableRedis(MemoryRedis):
    async def get(self, key: str):
        raise ConnectionError("redis went away")

    async def mget(self, keys: list[str]):
        raise ConnectionError("redis went away")

    async def set(self, key: str, value: str, ex: int | None = None):
        raise ConnectionError("redis went away")


@pytest.fixture(autouse=True)
def redis(monkeypatch):
    fake = MemoryRedis()
    monkeypatch.setattr(seats, "get_redis", lambda: fake)
    return fake


# ---------------------------------------------------------------------------
# Seat index
# ---------------------------------------------------------------------------


class TestSeats:
    @pytest.mark.asyncio
    async def test_record_stores_channel_with_ttl(self, redis):
        await seats.record(42, "J1")
        assert redis.values["localhost:seat:42"] == "J1"
        assert redis.ttls["localhost:seat:42"] == 300

    @pytest.mark.asyncio
    async def test_release_only_clears_matching_channel(self, redis):
        await seats.record(42, "J2")
        await seats.release(42, "J1")
        assert redis.values["localhost:seat:42"] == "J2"
        await seats.release(42, "J2")
        assert "localhost:seat:42" not in redis.values

    @pytest.mark.asyncio
    async def test_refresh_never_recreates_expired_seat(self, redis):
        await seats.refresh(7)
        assert "localhost:seat:7" not in redis.values

    @pytest.mark.asyncio
    async def test_lookup_leaves_out_unseated(self, redis):
        await seats.record(1, "J1")
        assert await seats.lookup([1, 2]) == {1: "J1"}
        assert await seats.lookup([]) == {}

    @pytest.mark.asyncio
    async def test_unreachable_redis_reads_as_unseated(self, monkeypatch):
        monkeypatch.setattr(seats, "get_redis", lambda: UnreachableRedis())
        await seats.record(1, "J1")
        await seats.release(1, "J1")
        assert await seats.lookup([1]) == {}

    @pytest.mark.asyncio
    async def test_without_redis_only_local_sockets_count(self, monkeypatch, tmp_path):
        monkeypatch.setattr(seats, "get_redis", lambda: None)
        hub = make_hub(tmp_path)
        conn = hub.manager.register(FakeWebSocket())
        await hub.dispatch(conn, join_frame("J1", "alice", 10))

        assert await seats.locate(hub.manager, [10, 20]) == {10: "J1", 20: None}

    @pytest.mark.asyncio
    async def test_locate_asks_redis_only_for_remote_identities(self, redis, tmp_path):
        hub = make_hub(tmp_path)
        conn = hub.manager.register(FakeWebSocket())
        await hub.dispatch(conn, join_frame("J1", "alice", 10))
        redis.values["localhost:seat:20"] = "J9"
        redis.commands.clear()

        assert await seats.locate(hub.manager, [10, 20, 30]) == {10: "J1", 20: "J9", 30: None}
        assert redis.commands == ["mget"]


# ---------------------------------------------------------------------------
# Seat lifecycle driven by the reconciler
# ---------------------------------------------------------------------------


class TestSeatLifecycle:
    @pytest.mark.asyncio
    async def test_join_switch_and_disconnect(self, redis, tmp_path):
        hub = make_hub(tmp_path, grace_seconds=5)
        conn = hub.manager.register(FakeWebSocket())

        await hub.dispatch(conn, join_frame("J1", "alice", 10))
        assert redis.values["localhost:seat:10"] == "J1"

        await hub.dispatch(conn, join_frame("J2", "alice", 10))
        assert redis.values["localhost:seat:10"] == "J2"

        await hub.reconciler.disconnect(conn)
        assert "localhost:seat:10" not in redis.values
        # still listed in J2 while the grace period runs
        assert [p.username for p in hub.registry.participants("J2")] == ["alice"]
        await hub.reconciler.shutdown()

    @pytest.mark.asyncio
    async def test_search_reports_grace_window_participant_offline(self, tmp_path):
        hub = make_hub(tmp_path, grace_seconds=5)
        alice = hub.manager.register(FakeWebSocket())
        bob_ws = FakeWebSocket()
        bob = hub.manager.register(bob_ws)
        guest = hub.manager.register(FakeWebSocket())
        await hub.dispatch(alice, join_frame("J1", "alice", 10))
        await hub.dispatch(bob, join_frame("J1", "bob", 20))
        await hub.dispatch(guest, join_frame("J1", "alfie"))

        await hub.reconciler.disconnect(alice)
        await hub.dispatch(bob, {"type": "searchUsers", "query": "al"})

        results = {r["username"]: r["online"] for r in bob_ws.last("searchResults")["results"]}
        assert results == {"alice": False, "alfie": True}
        await hub.reconciler.shutdown()

    @pytest.mark.asyncio
    async def test_heartbeat_refreshes_seat(self, redis, tmp_path):
        hub = make_hub(tmp_path)
        conn = hub.manager.register(FakeWebSocket())
        await hub.dispatch(conn, join_frame("J1", "alice", 10))
        redis.ttls["localhost:seat:10"] = 1

        await hub.dispatch(conn, {"type": "presence.heartbeat"})
        assert redis.ttls["localhost:seat:10"] == 300


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------


class TestPresenceAPI:
    def test_identity_seated_on_another_relay(self, client, redis):
        redis.values["localhost:seat:10"] = "J7"
        resp = client.get("/api/presence/10")
        assert resp.status_code == 200
        assert resp.json() == {"identity": 10, "status": "online", "channelId": "J7"}

    def test_unknown_identity_offline(self, client):
        assert client.get("/api/presence/11").json() == {"identity": 11, "status": "offline", "channelId": None}

    def test_bulk_status(self, client, redis):
        redis.values["localhost:seat:10"] = "J7"
        resp = client.get("/api/presence/bulk?ids=10,20")
        assert resp.status_code == 200
        assert resp.json() == {"statuses": {"10": "online", "20": "offline"}, "channels": {"10": "J7"}}

    def test_bulk_rejects_garbage(self, client):
        assert client.get("/api/presence/bulk?ids=1,abc").status_code == 400

    def test_bulk_rejects_too_many(self, client):
        ids = ",".join(str(i) for i in range(201))
        assert client.get(f"/api/presence/bulk?ids={ids}").status_code == 400

    def test_live_socket_reported_with_its_channel(self, client, redis):
        with client.websocket_connect("/ws") as ws:
            ws.send_json(join_frame("J1", "alice", 10))
            assert ws.receive_json()["type"] == "channelSnapshot"
            assert redis.values["localhost:seat:10"] == "J1"
            assert client.get("/api/presence/10").json()["channelId"] == "J1"
