"""Tests for topic cleanup."""

from recollect.summary import dedupe_topics
from recollect.summary.topics import parse_comma_separated


class TestDedupeTopics:
    """Tests for dropping topics subsumed by a more specific sibling."""

    def test_drops_generic_fragment(self):
        assert dedupe_topics(["SwiftUI", "SwiftUI Navigation", "Combine"]) == [
            "SwiftUI Navigation",
            "Combine",
        ]

    def test_case_insensitive(self):
        assert dedupe_topics(["python", "Python Packaging"]) == ["Python Packaging"]

    def test_keeps_middle_of_chain(self):
        """A topic that contains a shorter one is kept even if a longer one contains it."""
        assert dedupe_topics(["API", "REST API", "REST API Design"]) == [
            "REST API",
            "REST API Design",
        ]

    def test_preserves_input_order(self):
        assert dedupe_topics(["Cooking", "Travel", "Budget Travel", "Baking"]) == [
            "Cooking",
            "Budget Travel",
            "Baking",
        ]

    def test_unrelated_topics_untouched(self):
        topics = ["Rust", "Go", "Zig"]
        assert dedupe_topics(topics) == topics

    def test_exact_duplicates_kept(self):
        """Equal strings are not strictly longer than each other."""
        assert dedupe_topics(["Rust", "Rust"]) == ["Rust", "Rust"]

    def test_empty(self):
        assert dedupe_topics([]) == []


class TestParseCommaSeparated:
    def test_trims_and_drops_empty(self):
        assert parse_comma_separated(" SwiftUI , , Combine,") == ["SwiftUI", "Combine"]

    def test_empty(self):
        assert parse_comma_separated("") == []
