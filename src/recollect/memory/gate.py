"""Cheap pre-filter deciding which user messages are worth a fact-extraction call.

Rules are evaluated in a fixed order and the first match rejects the
message. Later rules are narrower and length-gated, so accepted messages
skew toward lasting first-person statements. Order matters: several
patterns overlap and the earlier rule always wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import NamedTuple

from ..models import Fact

logger = logging.getLogger(__name__)

MIN_LENGTH = 8
SHORT_LENGTH = 40
DUPLICATE_OVERLAP = 0.7


def _prefix(*phrases: str) -> re.Pattern[str]:
    """Match any phrase at the start of the text, on a word boundary."""
    alternatives = "|".join(re.escape(p) for p in phrases)
    return re.compile(rf"^(?:{alternatives})(?![\w'])")


def _anywhere(*patterns: str) -> re.Pattern[str]:
    """Match any raw regex anywhere in the text."""
    return re.compile("|".join(f"(?:{p})" for p in patterns))


INTERROGATIVE = _prefix(
    "what", "what's", "how", "why", "when", "where", "who", "which",
    "can you", "could you", "would you", "will you", "do you", "is it", "is this",
)

FILLER = _prefix(
    "thanks", "thank you", "thx", "ok", "okay", "sure", "got it", "i see",
    "right", "alright", "yeah", "yes", "yep", "cool", "great", "perfect",
    "awesome", "nice", "good point", "i understand", "i agree", "let me",
    "i'll try", "i'll do", "also", "wait", "actually", "one more", "by the way",
    "hmm", "hi", "hello", "hey",
)

COMMAND = _prefix(
    "show me", "explain", "help me", "give me", "tell me", "write me",
    "fix this", "fix the", "let's", "continue", "try again",
)

REACTION = _prefix("that's", "that is", "that was", "this is", "it's", "it is")

TEMPORARY = _anywhere(
    r"^i'?m (?:so |really |a bit |a little |kind of )?(?:confused|stuck|lost)\b",
    r"^i am (?:so |really |a bit )?(?:confused|stuck|lost)\b",
    r"^i'?m not sure\b",
    r"^i'?m still\b",
    r"^i'?m getting (?:closer|there)\b",
    r"^i'?m having (?:trouble|issues|problems)\b",
    r"^i don'?t (?:understand|get it)\b",
)

EMOTIONAL = _anywhere(
    r"^i'?m (?:so |really )?(?:excited|happy|glad|worried|frustrated|annoyed) "
    r"(?:to try|with|about this|about that|this|that)\b",
    r"^this is (?:so |really )?(?:frustrating|annoying|exciting)\b",
    r"^(?:oh )?wow\b",
    r"^ugh\b",
)

HYPOTHETICAL = _anywhere(
    r"\bif i (?:were|was)\b",
    r"\bi would\b.*\bif\b",
    r"^i(?: would|'d) (?:love|like) to\b",
    r"\bi might\b",
    r"\bi could see\b",
)

THIRD_PARTY = _anywhere(
    r"^(?:my|a|our) \w+ (?:said|says|told|mentioned|thinks|claims)\b",
    r"\bsomeone (?:said|told)\b",
    r"\bi heard\b",
    r"\b(?:he|she|they) said\b",
)

GENERALIZATION = _prefix(
    "people", "everyone", "everybody", "most", "many people", "usually",
    "nobody", "no one", "in general", "generally",
)

META = _anywhere(
    r"\bas i (?:mentioned|said)\b",
    r"\blike i said\b",
    r"\bto clarify\b",
    r"\bin other words\b",
    r"^going back to\b",
    r"\bwhat i meant\b",
)

COPULA = re.compile(r"\b(?:is|are)\b")
FIRST_PERSON = re.compile(r"\b(?:i|my|i'm|i've|me|mine)\b")


class GateRule(NamedTuple):
    """A named rejection predicate over (original, lowercased) text."""

    label: str
    rejects: Callable[[str, str], bool]


class FactGate:
    """Ordered rejection rules for fact-extraction candidates."""

    def __init__(self, min_length: int = MIN_LENGTH, short_length: int = SHORT_LENGTH) -> None:
        """Initialize the gate.

        Args:
            min_length: Messages shorter than this never carry a fact.
            short_length: Length under which the length-gated rules apply.
        """
        self.min_length = min_length
        self.short_length = short_length
        self.rules: tuple[GateRule, ...] = (
            GateRule("empty", lambda text, lower: not text),
            GateRule(
                "question",
                lambda text, lower: text.endswith("?") or bool(INTERROGATIVE.search(lower)),
            ),
            GateRule("too_short", lambda text, lower: len(text) < self.min_length),
            GateRule(
                "filler",
                lambda text, lower: self._is_short(text) and bool(FILLER.search(lower)),
            ),
            GateRule("command", lambda text, lower: bool(COMMAND.search(lower))),
            GateRule(
                "reaction",
                lambda text, lower: self._is_short(text) and bool(REACTION.search(lower)),
            ),
            GateRule(
                "temporary_state",
                lambda text, lower: self._is_short(text) and bool(TEMPORARY.search(lower)),
            ),
            GateRule("emotional_reaction", lambda text, lower: bool(EMOTIONAL.search(lower))),
            GateRule("acknowledgment", lambda text, lower: "makes sense" in lower),
            GateRule("hypothetical", lambda text, lower: bool(HYPOTHETICAL.search(lower))),
            GateRule("third_party", lambda text, lower: bool(THIRD_PARTY.search(lower))),
            GateRule("generalization", lambda text, lower: bool(GENERALIZATION.search(lower))),
            GateRule("meta_conversation", lambda text, lower: bool(META.search(lower))),
            GateRule(
                "external_opinion",
                lambda text, lower: (
                    self._is_short(text)
                    and bool(COPULA.search(lower))
                    and not FIRST_PERSON.search(lower)
                ),
            ),
        )

    def _is_short(self, text: str) -> bool:
        return len(text) < self.short_length

    def rejection_reason(self, utterance: str) -> str | None:
        """Label of the first rule that rejects the utterance, or None if accepted."""
        text = utterance.strip().replace("’", "'")
        lower = text.lower()
        for rule in self.rules:
            if rule.rejects(text, lower):
                return rule.label
        return None

    def should_extract(self, utterance: str) -> bool:
        """Whether the utterance is worth sending for fact extraction."""
        reason = self.rejection_reason(utterance)
        if reason is not None:
            logger.debug("Skipping extraction (%s): %s", reason, utterance)
            return False
        return True


def _words(text: str) -> set[str]:
    return set(text.split(" ")) - {""}


def is_duplicate(candidate: str, existing_facts: Iterable[Fact]) -> bool:
    """Check whether a proposed fact repeats one already known.

    A candidate is a duplicate of an existing fact when, case-insensitively,
    the texts are equal, one contains the other, or more than 70% of the
    smaller word set is shared (only when both have at least two words).
    Existing facts with empty content never match.

    Args:
        candidate: The proposed fact text.
        existing_facts: Facts to compare against.

    Returns:
        True as soon as one existing fact matches.
    """
    new_lower = candidate.strip().lower()
    new_words = _words(new_lower)

    for existing in existing_facts:
        existing_lower = existing.content.strip().lower()
        if not existing_lower:
            continue

        if new_lower == existing_lower:
            logger.debug("Duplicate: exact match with '%s'", existing.content)
            return True

        if new_lower in existing_lower or existing_lower in new_lower:
            logger.debug("Duplicate: '%s' overlaps with '%s'", candidate, existing.content)
            return True

        existing_words = _words(existing_lower)
        smaller = min(len(new_words), len(existing_words))
        if smaller < 2:
            continue

        overlap = len(new_words & existing_words) / smaller
        if overlap > DUPLICATE_OVERLAP:
            logger.debug(
                "Duplicate: %d%% word overlap with '%s'", int(overlap * 100), existing.content
            )
            return True

    return False
