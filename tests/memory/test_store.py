"""Tests for MemoryStore."""

import dataclasses
from pathlib import Path

import pytest

from recollect.memory import MemoryStore
from recollect.models import Fact, FactCategory, FactSource


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    """Create a MemoryStore with a temporary database."""
    store = MemoryStore(tmp_path / "facts.db")
    store.init_db()
    yield store
    store.close()


class TestMemoryStore:
    """Tests for fact persistence."""

    def test_empty(self, store: MemoryStore):
        assert store.get_all() == []

    def test_save_and_get(self, store: MemoryStore):
        fact = Fact(
            category=FactCategory.PREFERENCES,
            content="Likes tea",
            confidence=0.9,
            source=FactSource.AUTO,
            conversation_id="conv-1",
        )
        store.save_fact(fact)

        assert store.get(fact.id) == fact

    def test_get_missing(self, store: MemoryStore):
        assert store.get("missing") is None

    def test_save_replaces_same_id(self, store: MemoryStore):
        fact = store.save_fact(Fact(category=FactCategory.GOALS, content="Learn Go"))
        store.save_fact(dataclasses.replace(fact, content="Learn Rust", verified=True))

        facts = store.get_all()
        assert len(facts) == 1
        assert facts[0].content == "Learn Rust"
        assert facts[0].verified is True

    def test_get_all_oldest_first(self, store: MemoryStore):
        first = store.save_fact(Fact(category=FactCategory.GOALS, content="First"))
        second = store.save_fact(Fact(category=FactCategory.GOALS, content="Second"))

        assert [f.id for f in store.get_all()] == [first.id, second.id]

    def test_get_by_category(self, store: MemoryStore):
        store.save_fact(Fact(category=FactCategory.GOALS, content="Learn Rust"))
        store.save_fact(Fact(category=FactCategory.PREFERENCES, content="Likes tea"))

        facts = store.get_by_category(FactCategory.PREFERENCES)
        assert [f.content for f in facts] == ["Likes tea"]

    def test_delete(self, store: MemoryStore):
        fact = store.save_fact(Fact(category=FactCategory.GOALS, content="Learn Rust"))

        assert store.delete(fact.id) is True
        assert store.delete(fact.id) is False
        assert store.get_all() == []

    def test_persists_across_connections(self, tmp_path: Path):
        db_path = tmp_path / "nested" / "facts.db"
        first = MemoryStore(db_path)
        first.init_db()
        fact = first.save_fact(Fact(category=FactCategory.CONTEXT, content="Has a dog"))
        first.close()

        second = MemoryStore(db_path)
        second.init_db()
        try:
            assert second.get(fact.id) == fact
        finally:
            second.close()
