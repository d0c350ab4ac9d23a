"""Tests for the in-process conversation memory store."""
import pytest

from mindweave.services.agent_service import InMemoryMemoryStore, MemoryEntry


@pytest.fixture
def store():
    return InMemoryMemoryStore(max_entries_per_user=2, max_users=2)


class TestHistory:
    """Tests for per-user history."""

    def test_unknown_user_is_empty(self, store):
        assert store.recent("nobody", 5) == []

    def test_entries_capped_per_user(self, store):
        for text in ("one", "two", "three"):
            store.add("user_a", MemoryEntry(content=text))

        assert [e.content for e in store.recent("user_a", 10)] == ["two", "three"]

    def test_zero_limit(self, store):
        store.add("user_a", MemoryEntry(content="one"))

        assert store.recent("user_a", 0) == []


class TestUserEviction:
    """Tests for the bound on distinct users."""

    def test_oldest_user_evicted_past_capacity(self, store):
        store.add("user_a", MemoryEntry(content="a"))
        store.add("user_b", MemoryEntry(content="b"))
        store.add("user_c", MemoryEntry(content="c"))

        assert store.recent("user_a", 5) == []
        assert [e.content for e in store.recent("user_b", 5)] == ["b"]
        assert [e.content for e in store.recent("user_c", 5)] == ["c"]

    def test_recent_read_keeps_user(self, store):
        store.add("user_a", MemoryEntry(content="a"))
        store.add("user_b", MemoryEntry(content="b"))
        store.recent("user_a", 5)
        store.add("user_c", MemoryEntry(content="c"))

        assert [e.content for e in store.recent("user_a", 5)] == ["a"]
        assert store.recent("user_b", 5) == []

    def test_existing_user_does_not_evict(self, store):
        store.add("user_a", MemoryEntry(content="a1"))
        store.add("user_b", MemoryEntry(content="b"))
        store.add("user_a", MemoryEntry(content="a2"))

        assert [e.content for e in store.recent("user_b", 5)] == ["b"]
        assert [e.content for e in store.recent("user_a", 5)] == ["a1", "a2"]

    def test_invalid_max_users(self):
        with pytest.raises(ValueError):
            InMemoryMemoryStore(max_users=0)
