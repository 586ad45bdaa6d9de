"""Tests for the bounded message ledger."""

import pytest

from channelrelay.core.ledger import MessageLedger
from channelrelay.tests.helpers import make_message


class TestAppendAndEvict:
    def test_keeps_insertion_order(self):
        ledger = MessageLedger(capacity=5)
        for i in range(3):
            ledger.append(make_message(f"m{i}"))
        assert [m.id for m in ledger.history()] == ["m0", "m1", "m2"]

    def test_evicts_oldest_beyond_capacity(self):
        ledger = MessageLedger(capacity=100)
        for i in range(100):
            ledger.append(make_message(f"m{i}"), author_token=f"tok{i}")
        evicted = ledger.append(make_message("m100"), author_token="tok100")

        assert evicted == ["m0"]
        assert len(ledger) == 100
        assert ledger.history()[0].id == "m1"
        assert ledger.history()[-1].id == "m100"
        assert "m0" not in ledger
        assert ledger.author_token("m0") is None
        assert ledger.author_token("m1") == "tok1"

    def test_duplicate_id_rejected(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("m1"))
        with pytest.raises(ValueError):
            ledger.append(make_message("m1"))

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            MessageLedger(capacity=0)

    def test_history_is_a_copy(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("m1"))
        ledger.history().clear()
        assert len(ledger) == 1


class TestEditDelete:
    def test_edit_in_place(self):
        ledger = MessageLedger(capacity=5)
        for mid in ("a", "b", "c"):
            ledger.append(make_message(mid))

        updated = ledger.edit("b", "changed")

        assert updated.content == "changed"
        assert updated.edited_at is not None
        assert [m.id for m in ledger.history()] == ["a", "b", "c"]
        assert ledger.get("b").content == "changed"

    def test_edit_unknown_returns_none(self):
        assert MessageLedger(capacity=5).edit("nope", "x") is None

    def test_delete_blanks_content_and_keeps_entry(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a", content="secret"))

        deleted = ledger.delete("a")

        assert deleted.content == ""
        assert deleted.deleted_at is not None
        assert len(ledger) == 1

    def test_deleted_message_cannot_be_edited_or_deleted_again(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.delete("a")
        assert ledger.edit("a", "back") is None
        assert ledger.delete("a") is None


class TestReactions:
    def test_add_is_idempotent(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.add_reaction("a", "👍", "bob", 20)
        updated = ledger.add_reaction("a", "👍", "bob", 20)

        bucket = updated.reactions["👍"]
        assert bucket.usernames == ["bob"]
        assert bucket.identities == [20]

    def test_multiple_reactors_accumulate(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.add_reaction("a", "🔥", "bob")
        updated = ledger.add_reaction("a", "🔥", "carol", 30)
        assert updated.reactions["🔥"].usernames == ["bob", "carol"]
        assert updated.reactions["🔥"].identities == [30]

    def test_remove_last_reactor_drops_emoji_key(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.add_reaction("a", "👍", "bob", 20)
        updated = ledger.remove_reaction("a", "👍", "bob", 20)
        assert "👍" not in updated.reactions

    def test_remove_keeps_other_reactors(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.add_reaction("a", "👍", "bob", 20)
        ledger.add_reaction("a", "👍", "carol", 30)
        updated = ledger.remove_reaction("a", "👍", "bob", 20)
        assert updated.reactions["👍"].usernames == ["carol"]
        assert updated.reactions["👍"].identities == [30]

    def test_remove_absent_emoji_returns_none(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        assert ledger.remove_reaction("a", "👍", "bob") is None

    def test_no_reactions_on_deleted_message(self):
        ledger = MessageLedger(capacity=5)
        ledger.append(make_message("a"))
        ledger.delete("a")
        assert ledger.add_reaction("a", "👍", "bob") is None
