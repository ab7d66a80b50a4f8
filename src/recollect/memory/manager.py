"""Memory manager: the single writer of the fact store."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..llm import GenerationError
from ..models import Fact, FactCategory, FactSource, utcnow
from .gate import is_duplicate
from .store import MemoryStore

if TYPE_CHECKING:
    from ..logging import JSONLLogger
    from .extractor import FactExtractor

logger = logging.getLogger(__name__)

CONTEXT_CONFIDENCE = 0.6


def _require_content(content: str) -> str:
    content = content.strip()
    if not content:
        raise ValueError("Fact content cannot be empty")
    return content


class MemoryManager:
    """Orchestrates fact storage, manual edits and background extraction.

    Read-modify-write of the fact list (dedupe check + append) is serialized
    by a lock, and always compares against the store's current contents
    rather than a snapshot taken when extraction started.
    """

    def __init__(
        self,
        store: MemoryStore,
        extractor: FactExtractor | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the manager with a store and optional extractor.

        Args:
            store: The MemoryStore for persistence.
            extractor: Optional FactExtractor for automatic extraction.
            event_log: Optional structured event log.
        """
        self.store = store
        self.extractor = extractor
        self.event_log = event_log
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[list[Fact]]] = set()

    def load_all(self) -> list[Fact]:
        """Load all facts, verified first, then by confidence, then most recent."""
        facts = self.store.get_all()
        facts.sort(key=lambda f: (f.verified, f.confidence, f.updated_at), reverse=True)
        return facts

    def facts_by_category(self, category: FactCategory) -> list[Fact]:
        """Facts in one category."""
        return self.store.get_by_category(category)

    def verified_facts(self) -> list[Fact]:
        """Facts the user has confirmed."""
        return [f for f in self.load_all() if f.verified]

    def facts_for_context(self) -> list[Fact]:
        """Facts suitable for the prompt: verified or reasonably confident."""
        return [
            f for f in self.load_all()
            if f.verified or f.confidence >= CONTEXT_CONFIDENCE
        ]

    def add_fact(self, category: FactCategory, content: str) -> Fact:
        """Create a fact by direct user action.

        Raises:
            ValueError: If the content is empty.
        """
        fact = Fact(
            category=category, content=_require_content(content), source=FactSource.MANUAL
        )
        return self.store.save_fact(fact)

    def update_fact(
        self,
        fact_id: str,
        content: str | None = None,
        category: FactCategory | None = None,
    ) -> Fact | None:
        """Apply a user edit. Returns None if the fact no longer exists.

        Raises:
            ValueError: If the new content is empty.
        """
        if content is not None:
            content = _require_content(content)

        fact = self.store.get(fact_id)
        if fact is None:
            return None

        updated = dataclasses.replace(
            fact,
            content=content if content is not None else fact.content,
            category=category or fact.category,
            source=FactSource.EDITED,
            updated_at=utcnow(),
        )
        return self.store.save_fact(updated)

    def verify_fact(self, fact_id: str) -> Fact | None:
        """Mark a fact as confirmed by the user."""
        fact = self.store.get(fact_id)
        if fact is None:
            return None
        return self.store.save_fact(
            dataclasses.replace(fact, verified=True, updated_at=utcnow())
        )

    def delete_fact(self, fact_id: str) -> bool:
        """Delete a fact. Facts are only ever removed by the user."""
        return self.store.delete(fact_id)

    async def add_extracted_facts(self, facts: list[Fact]) -> list[Fact]:
        """Save extracted facts that don't duplicate known ones.

        Args:
            facts: Candidate facts.

        Returns:
            The facts actually saved.
        """
        async with self._lock:
            known = self.store.get_all()
            saved: list[Fact] = []
            for fact in facts:
                if is_duplicate(fact.content, known):
                    logger.debug("Skipping duplicate fact: %s", fact.content)
                    continue
                self.store.save_fact(fact)
                known.append(fact)
                saved.append(fact)
            return saved

    async def extract_from_message(self, utterance: str, conversation_id: str) -> list[Fact]:
        """Extract facts from one user message and save the new ones.

        Raises:
            GenerationError: If the generation call fails.
        """
        if not self.extractor:
            return []

        facts = await self.extractor.extract_from_message(utterance, conversation_id)
        if not facts:
            return []

        saved = await self.add_extracted_facts(facts)
        if saved and self.event_log:
            self.event_log.log_facts_saved(len(saved), conversation_id=conversation_id)
        return saved

    def schedule_extraction(
        self,
        utterance: str,
        conversation_id: str,
        on_saved: Callable[[int], None] | None = None,
    ) -> asyncio.Task[list[Fact]]:
        """Run extraction in the background without blocking the caller.

        Args:
            utterance: The user's message.
            conversation_id: Conversation the message belongs to. It may be
                deleted before the task completes.
            on_saved: Called with the count when at least one fact was saved.

        Returns:
            The background task. Failures are logged, never raised from it.
        """
        task = asyncio.create_task(
            self._extract_in_background(utterance, conversation_id, on_saved)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _extract_in_background(
        self,
        utterance: str,
        conversation_id: str,
        on_saved: Callable[[int], None] | None,
    ) -> list[Fact]:
        try:
            saved = await self.extract_from_message(utterance, conversation_id)
        except GenerationError as e:
            logger.warning("Background fact extraction failed (%s): %s", e.kind.value, e)
            if self.event_log:
                self.event_log.log_generation_failed(
                    "fact_extraction", e.kind.value, str(e), conversation_id=conversation_id
                )
            return []

        if saved and on_saved:
            on_saved(len(saved))
        return saved

    async def wait_for_pending(self) -> None:
        """Wait for all scheduled background extractions to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
