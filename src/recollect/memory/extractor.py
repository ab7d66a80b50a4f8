"""Fact extraction from user messages using the generation collaborator."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from ..llm import GenerationClient, OutputSchema, SchemaField
from ..models import Fact, FactCategory, FactSource, Message, format_messages
from .gate import FactGate

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 1.0
NO_FACTS = "NO_FACTS"

MESSAGE_INSTRUCTIONS = "Extract personal facts when users share information about themselves."

MESSAGE_PROMPT = """Message: "{message}"

If this contains a personal fact (like, dislike, preference, job, name, hobby), set has_fact=true and extract it.
Examples that SHOULD be extracted: "I like pizza", "I'm a teacher", "I love hiking", "My name is John"
Examples that should NOT be extracted: "That's interesting", "Thanks", "OK"."""

EXTRACTED_FACT_SCHEMA = OutputSchema(
    name="ExtractedFact",
    fields=(
        SchemaField(
            "has_fact",
            "True ONLY if the message contains a lasting personal fact about the user "
            "(name, job, hobby, preference, goal, location). False for opinions about "
            "the conversation, reactions, questions, or temporary states.",
            type="boolean",
        ),
        SchemaField(
            "fact",
            "The fact summarized in third person, starting with a verb. Examples: "
            "'Likes pizza', 'Works as a developer', 'Lives in Seattle'. Keep under "
            "8 words. Empty if no fact.",
        ),
    ),
)

CONVERSATION_INSTRUCTIONS = """You are a fact extraction system. Analyze conversations and extract factual information about the user.
Only extract explicit facts that the user has directly stated. Do not make assumptions."""

CONVERSATION_PROMPT = """Analyze the following conversation and extract factual information about the user.

Categories to look for:
- personalInfo: Name, age, location, occupation, relationships
- preferences: Likes, dislikes, preferred styles or approaches
- goals: What the user wants to achieve or learn
- context: Background information, current projects, hobbies
- instructions: How the user wants you to behave or respond

Conversation:
{conversation}

For each fact found, respond with one fact per line in this exact format:
CATEGORY|CONTENT|CONFIDENCE

Where:
- CATEGORY is one of: personalInfo, preferences, goals, context, instructions
- CONTENT is the fact itself (keep it concise)
- CONFIDENCE is a number between 0.5 and 1.0

Only include facts you are confident about. If no facts are found, respond with "NO_FACTS"."""


class FactExtractor:
    """Extracts facts from user messages using the generation collaborator."""

    def __init__(self, client: GenerationClient, gate: FactGate | None = None) -> None:
        """Initialize the extractor.

        Args:
            client: The generation collaborator.
            gate: Pre-filter for single messages.
        """
        self.client = client
        self.gate = gate or FactGate()

    async def extract_from_message(self, utterance: str, conversation_id: str) -> list[Fact]:
        """Extract at most one fact from a single user message.

        Messages rejected by the gate never reach the model.

        Raises:
            GenerationError: If the generation call fails.
        """
        if not self.gate.should_extract(utterance):
            return []

        result = EXTRACTED_FACT_SCHEMA.coerce(
            await self.client.complete(
                MESSAGE_INSTRUCTIONS,
                MESSAGE_PROMPT.format(message=utterance.strip()),
                EXTRACTED_FACT_SCHEMA,
            )
        )

        content = result["fact"].strip()
        if not result["has_fact"] or not content:
            logger.debug("No fact found in: %s", utterance)
            return []

        fact = Fact(
            category=FactCategory.CONTEXT,
            content=content,
            confidence=DEFAULT_CONFIDENCE,
            source=FactSource.AUTO,
            conversation_id=conversation_id,
        )
        logger.debug("Extracted fact: %s", fact.content)
        return [fact]

    async def extract_from_conversation(
        self, messages: Sequence[Message], conversation_id: str
    ) -> list[Fact]:
        """Extract facts from a whole conversation in one call.

        Raises:
            GenerationError: If the generation call fails.
        """
        if not any(m.from_user for m in messages):
            return []

        response = await self.client.complete(
            CONVERSATION_INSTRUCTIONS,
            CONVERSATION_PROMPT.format(conversation=format_messages(messages)),
        )
        return self._parse_facts(response, conversation_id)

    def _parse_facts(self, response: str, conversation_id: str) -> list[Fact]:
        """Parse CATEGORY|CONTENT|CONFIDENCE lines, skipping malformed ones."""
        facts = []
        for raw_line in response.splitlines():
            line = raw_line.strip()
            if not line or line == NO_FACTS:
                continue

            parts = line.split("|")
            if len(parts) != 3:
                logger.debug("Skipping malformed fact line: %s", line)
                continue

            category = FactCategory.parse(parts[0])
            content = parts[1].strip()
            try:
                confidence = float(parts[2].strip())
            except ValueError:
                confidence = math.nan
            if not math.isfinite(confidence):
                logger.debug("Skipping fact with bad confidence: %s", line)
                continue

            if category is None or not content:
                logger.debug("Skipping fact line: %s", line)
                continue

            facts.append(
                Fact(
                    category=category,
                    content=content,
                    confidence=min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE),
                    source=FactSource.AUTO,
                    conversation_id=conversation_id,
                )
            )
        return facts
