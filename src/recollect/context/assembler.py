"""Four-layer context assembly with a sliding window over the current conversation.

Layers, in prompt order:
    1. Session info (date, conversation title)
    2. User memory (durable facts)
    3. Recent conversations (summaries of other conversations)
    4. Current conversation (most recent messages that fit)

Assembly never fails: when the budget runs out, content is dropped whole,
never truncated mid-line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from ..models import (
    NEW_CONVERSATION_TITLE,
    AssembledContext,
    Conversation,
    Fact,
    Message,
    utcnow,
)
from ..tokens import estimate_tokens
from .budget import ContextBudget

logger = logging.getLogger(__name__)

MAX_FACTS = 15
MAX_RECENT_CONVERSATIONS = 5

SESSION_HEADER = "[Session Info]"
MEMORY_HEADER = "[User Memory]"
RECENT_HEADER = "[Recent Conversations]"
CURRENT_HEADER = "[Current Conversation]"
NO_MESSAGES_PLACEHOLDER = "(No messages yet)"


def format_timestamp(moment: datetime) -> str:
    """Format a datetime like 'October 19, 2026 at 3:04 PM'."""
    hour = moment.hour % 12 or 12
    return f"{moment:%B} {moment.day}, {moment.year} at {hour}:{moment:%M %p}"


def _fill(header: str, lines: Sequence[str], budget: int) -> tuple[str, int]:
    """Accumulate whole lines under a header until the next one would overflow.

    Returns:
        The rendered block (empty if no line fit) and the number of lines kept.
    """
    used = estimate_tokens(header + "\n")
    kept: list[str] = []
    for line in lines:
        cost = estimate_tokens(line + "\n")
        if used + cost > budget:
            break
        kept.append(line)
        used += cost

    if not kept:
        return "", 0
    return "\n".join([header, *kept]), len(kept)


class ContextAssembler:
    """Builds the prompt the model sees for one request."""

    def __init__(
        self,
        budget: ContextBudget | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the assembler.

        Args:
            budget: Token budget, defaults to the standard 4096-token budget.
            clock: Returns the current time; injectable for tests.
        """
        self.budget = budget or ContextBudget()
        self._clock = clock or (lambda: utcnow().astimezone())

    def assemble(
        self,
        conversation: Conversation | None,
        facts: Sequence[Fact],
        prior_conversations: Sequence[Conversation],
        messages: Sequence[Message],
        budget: ContextBudget | None = None,
    ) -> AssembledContext:
        """Assemble all four layers.

        Args:
            conversation: The active conversation, None for a brand-new chat.
            facts: Candidate user facts.
            prior_conversations: Other conversations, summarized or not.
            messages: The active conversation's history, oldest first.
            budget: Overrides the assembler's budget for this call.

        Returns:
            The assembled layers and their total estimated token count.
        """
        budget = budget or self.budget

        session_metadata = self.build_session_metadata(conversation)
        user_memory = self.build_user_memory(facts, budget.facts)
        current_id = conversation.id if conversation else None
        recent = self.build_recent_conversations(
            prior_conversations, budget.summaries, exclude_id=current_id
        )

        used = (
            estimate_tokens(session_metadata)
            + estimate_tokens(user_memory)
            + estimate_tokens(recent)
        )
        remaining = budget.remaining_for_messages(used)
        current = self.build_current_messages(messages, remaining)

        total = used + estimate_tokens(current)
        logger.debug(
            "Assembled context: %d tokens (layers 1-3: %d, window budget: %d)",
            total,
            used,
            remaining,
        )

        return AssembledContext(
            session_metadata=session_metadata,
            user_memory=user_memory,
            recent_conversations=recent,
            current_messages=current,
            estimated_tokens=total,
        )

    def build_session_metadata(self, conversation: Conversation | None) -> str:
        """Layer 1: always rendered in full."""
        title = conversation.title if conversation else NEW_CONVERSATION_TITLE
        return (
            f"{SESSION_HEADER}\n"
            f"Date: {format_timestamp(self._clock())}\n"
            f"Conversation: {title}"
        )

    def build_user_memory(self, facts: Sequence[Fact], budget: int) -> str:
        """Layer 2: verified facts first, then by confidence."""
        if not facts:
            return ""

        candidates = sorted(
            facts[:MAX_FACTS],
            key=lambda f: (f.verified, f.confidence),
            reverse=True,
        )
        lines = [f"- {fact.category.value}: {fact.content}" for fact in candidates]
        block, kept = _fill(MEMORY_HEADER, lines, budget)
        if kept < len(lines):
            logger.debug("Dropped %d fact(s) over budget", len(lines) - kept)
        return block

    def build_recent_conversations(
        self,
        conversations: Sequence[Conversation],
        budget: int,
        exclude_id: str | None = None,
    ) -> str:
        """Layer 3: the most recently updated summarized conversations."""
        summarized = [
            c for c in conversations
            if c.summary is not None and c.id != exclude_id
        ]
        if not summarized:
            return ""

        summarized.sort(key=lambda c: c.updated_at, reverse=True)
        lines = [
            f'- "{c.summary.title}": {c.summary.summary}'
            for c in summarized[:MAX_RECENT_CONVERSATIONS]
            if c.summary is not None
        ]
        block, _ = _fill(RECENT_HEADER, lines, budget)
        return block

    def build_current_messages(self, messages: Sequence[Message], budget: int) -> str:
        """Layer 4: sliding window, newest messages kept, oldest dropped first."""
        if not messages:
            return f"{CURRENT_HEADER}\n{NO_MESSAGES_PLACEHOLDER}"

        used = estimate_tokens(CURRENT_HEADER + "\n")
        window: list[str] = []

        for message in reversed(messages):
            line = f"{message.sender}: {message.text}"
            cost = estimate_tokens(line + "\n")
            if used + cost > budget:
                break
            window.insert(0, line)
            used += cost

        if len(window) < len(messages):
            logger.debug(
                "Sliding window kept %d of %d message(s)", len(window), len(messages)
            )
        return "\n".join([CURRENT_HEADER, *window])
