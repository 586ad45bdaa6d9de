from channelrelay.core.registry import ChannelRegistry


class TestGetOrCreate:
    def test_first_join_creates_session(self):
        registry = ChannelRegistry(history_limit=10)
        session = registry.get_or_create("J1", "alice", identity=10, group_id=5)
        assert "J1" in registry
        assert session.created_by == "alice"
        assert session.group_id == 5
        assert [p.username for p in session.participants()] == ["alice"]

    def test_later_join_reuses_session(self):
        registry = ChannelRegistry()
        first = registry.get_or_create("J1", "alice")
        second = registry.get_or_create("J1", "bob")
        assert first is second
        assert first.created_by == "alice"
        assert len(registry) == 1
        assert first.participant_count == 2

    def test_group_id_filled_in_later(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "alice")
        session = registry.get_or_create("J1", "bob", group_id=7)
        assert session.group_id == 7
        registry.get_or_create("J1", "carol", group_id=8)
        assert session.group_id == 7

    def test_ensure_creates_empty_session_once(self):
        registry = ChannelRegistry()
        session, created = registry.ensure("J1", "host")
        assert created
        assert session.participants() == []
        again, created = registry.ensure("J1", "someone", group_id=3)
        assert again is session
        assert not created
        assert again.created_by == "host"
        assert again.group_id == 3

    def test_pass_throughs_on_unknown_channel(self):
        registry = ChannelRegistry()
        assert registry.remove_participant("nope", "alice") is None
        assert registry.set_typing("nope", "alice", True) is False
        assert registry.participants("nope") == []
        assert registry.typing_usernames("nope") == []
        assert "nope" not in registry


class TestListGroups:
    def test_groups_by_game_busiest_first(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "alice", group_id=100, avatar_url="https://img/a.png")
        registry.get_or_create("J1", "bob", group_id=100)
        registry.get_or_create("J2", "carol", group_id=200)
        registry.get_or_create("J3", "dave", group_id=200, avatar_url="https://img/d.png")
        registry.get_or_create("J4", "erin")

        groups = registry.list_groups()

        assert [g.group_id for g in groups] == [200, 100]
        busy = groups[0]
        assert busy.session_count == 2
        assert busy.total_participants == 2
        assert {s.channel_id for s in busy.sessions} == {"J2", "J3"}

        quiet = groups[1]
        assert quiet.session_count == 1
        assert quiet.total_participants == 2
        assert quiet.sessions[0].avatar_urls == ["https://img/a.png"]

    def test_sample_avatars_capped(self):
        registry = ChannelRegistry()
        for i in range(6):
            registry.get_or_create("J1", f"user{i}", group_id=1, avatar_url=f"https://img/{i}.png")
        summary = registry.list_groups(sample_avatars=4)[0].sessions[0]
        assert summary.participant_count == 6
        assert len(summary.avatar_urls) == 4

    def test_no_groups(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "alice")
        assert registry.list_groups() == []


class TestSearchUsers:
    def test_substring_match_case_insensitive(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "AliceWonder", identity=10)
        registry.get_or_create("J1", "bob", identity=20)
        results = registry.search_users("lice")
        assert [r.username for r in results] == ["AliceWonder"]
        assert results[0].channel_id == "J1"

    def test_current_channel_first(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "sam_one", identity=1)
        registry.get_or_create("J2", "sam_two", identity=2)
        results = registry.search_users("sam", current_channel_id="J2")
        assert [r.username for r in results] == ["sam_two", "sam_one"]

    def test_same_identity_reported_once(self):
        registry = ChannelRegistry()
        registry.get_or_create("J1", "alice", identity=10)
        registry.get_or_create("J2", "alice", identity=10)
        assert len(registry.search_users("alice")) == 1

    def test_blank_query_and_limit(self):
        registry = ChannelRegistry()
        for i in range(5):
            registry.get_or_create("J1", f"player{i}")
        assert registry.search_users("   ") == []
        assert len(registry.search_users("player", limit=3)) == 3
