"""Tests for the fact-extraction gate and duplicate detection."""

import pytest

from recollect.memory import FactGate, is_duplicate
from recollect.models import Fact, FactCategory


@pytest.fixture
def gate() -> FactGate:
    return FactGate()


def _fact(content: str) -> Fact:
    return Fact(category=FactCategory.CONTEXT, content=content)


class TestShouldExtract:
    """Accept/reject decisions."""

    @pytest.mark.parametrize(
        "utterance",
        [
            "I'm a vegetarian",
            "I work as a nurse in Boston",
            "My name is Sarah",
            "I'm thinking about learning Rust",
            "I'm confused about quantum computing and want to learn more",
            "This is off topic but I'm allergic to peanuts",
            "I have two cats named Milo and Luna",
        ],
    )
    def test_accepts_lasting_first_person_statements(self, gate: FactGate, utterance: str):
        assert gate.should_extract(utterance) is True

    @pytest.mark.parametrize(
        "utterance",
        [
            "How do I fix this bug?",
            "Thanks!",
            "My friend said 'I love Python'",
            "I'm confused",
            "",
        ],
    )
    def test_rejects_noise(self, gate: FactGate, utterance: str):
        assert gate.should_extract(utterance) is False


class TestRejectionReason:
    """Each rule, and the precedence between overlapping rules."""

    @pytest.mark.parametrize(
        "utterance,reason",
        [
            ("   ", "empty"),
            ("Is this right?", "question"),
            ("What time is it", "question"),
            ("Can you help me with my resume", "question"),
            ("Hi bot", "too_short"),
            ("Thanks for the help", "filler"),
            ("Okay got it, next one", "filler"),
            ("Show me how to sort a list", "command"),
            ("Explain recursion to me like I'm five", "command"),
            ("That's really cool", "reaction"),
            ("I'm stuck on this step", "temporary_state"),
            ("I don't understand the error", "temporary_state"),
            ("Wow, that worked on the first try", "emotional_reaction"),
            ("I'm so excited about this", "emotional_reaction"),
            ("That makes sense to me", "acknowledgment"),
            ("If I were rich I would buy a boat", "hypothetical"),
            ("I might move to Canada next year", "hypothetical"),
            ("I'd love to visit Japan someday", "hypothetical"),
            ("My boss said I should learn Go", "third_party"),
            ("I heard Rust is fast", "third_party"),
            ("People usually prefer tabs over spaces", "generalization"),
            ("As I mentioned, I work at a bank", "meta_conversation"),
            ("To clarify, the deadline moved", "meta_conversation"),
            ("Python is the best language", "external_opinion"),
        ],
    )
    def test_rule_labels(self, gate: FactGate, utterance: str, reason: str):
        assert gate.rejection_reason(utterance) == reason

    def test_question_mark_wins_over_everything(self, gate: FactGate):
        """An earlier rule always wins when several match."""
        assert gate.rejection_reason("My friend said I'm a vegetarian?") == "question"

    def test_length_gating_keeps_elaborated_statements(self, gate: FactGate):
        """Short temporary states are rejected; longer statements with the same words are not."""
        assert gate.rejection_reason("I'm stuck") == "temporary_state"
        assert gate.rejection_reason(
            "I'm stuck in a job I dislike and I want to become a teacher"
        ) is None

    def test_long_filler_prefix_is_not_filler(self, gate: FactGate):
        assert gate.rejection_reason(
            "Yeah, I have been a professional violinist for twelve years"
        ) is None

    def test_external_opinion_needs_no_first_person(self, gate: FactGate):
        assert gate.rejection_reason("My car is a Tesla") is None

    def test_curly_apostrophe(self, gate: FactGate):
        assert gate.rejection_reason("I’m confused") == "temporary_state"

    def test_prefix_matches_whole_words(self, gate: FactGate):
        """'hi' as a filler prefix must not match 'hiking'."""
        assert gate.rejection_reason("hiking is my favorite weekend hobby") is None

    def test_custom_lengths(self):
        gate = FactGate(min_length=20)
        assert gate.rejection_reason("I'm a vegetarian") == "too_short"


class TestIsDuplicate:
    """Duplicate detection against known facts."""

    def test_identical(self):
        assert is_duplicate("Likes pizza", [_fact("Likes pizza")]) is True

    def test_case_insensitive(self):
        assert is_duplicate("likes PIZZA", [_fact("Likes pizza")]) is True

    def test_substring_either_way(self):
        assert is_duplicate("Likes pizza", [_fact("Likes pizza with pineapple")]) is True
        assert is_duplicate("Likes pizza with pineapple", [_fact("Likes pizza")]) is True

    def test_unrelated(self):
        assert is_duplicate("Lives in Seattle", [_fact("Works as a nurse")]) is False

    def test_high_word_overlap(self):
        assert is_duplicate(
            "Works as a software engineer",
            [_fact("Works as a senior software engineer")],
        ) is True

    def test_overlap_threshold_is_exclusive(self):
        """Exactly 70% shared words is not a duplicate; more is."""
        existing = [_fact("a1 a2 a3 a4 a5 a6 a7 c8 c9 c10")]
        assert is_duplicate("a1 a2 a3 a4 a5 a6 a7 b8 b9 b10", existing) is False
        assert is_duplicate("a1 a2 a3 a4 a5 a6 a7 a8 b9 b10", [
            _fact("a1 a2 a3 a4 a5 a6 a7 a8 c9 c10"),
        ]) is True

    def test_no_existing_facts(self):
        assert is_duplicate("Likes pizza", []) is False

    def test_any_match_is_enough(self):
        existing = [_fact("Works as a nurse"), _fact("Likes pizza")]
        assert is_duplicate("Likes pizza", existing) is True

    def test_empty_existing_fact_ignored(self):
        existing = [_fact(""), _fact("   ")]
        assert is_duplicate("Lives in Seattle", existing) is False
        assert is_duplicate("Lives in Seattle", existing + [_fact("Lives in Seattle")]) is True
