"""Conversation summarization with single-pass and chunked (map-reduce) strategies.

Short conversations are summarized in one call. Longer ones are split into
fixed-size chunks that are summarized in order, then merged in one final
call. Conversations past ``chunk_size * max_chunks`` messages are summarized
from their first messages only, which bounds the cost of a summary.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ..llm import GenerationClient, OutputSchema, SchemaField
from ..models import Conversation, ConversationSummary, Message, format_messages
from ..tokens import estimate_tokens
from .topics import dedupe_topics, parse_comma_separated

if TYPE_CHECKING:
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)

CHUNK_SIZE = 20
MAX_CHUNKS = 10
SNIPPET_COUNT = 3
SNIPPET_WORDS = 10
QUICK_TITLE_WORDS = 5
MIN_MESSAGES_FOR_SUMMARY = 4
ELLIPSIS = "..."

SINGLE_PASS_SCHEMA = OutputSchema(
    name="SinglePassSummary",
    fields=(
        SchemaField("title", "Title in 3-5 words. Example: 'SwiftUI Navigation Help'"),
        SchemaField("summary", "One sentence: what user wanted and outcome. No fluff."),
        SchemaField("topics", "3-5 key topics, comma-separated"),
        SchemaField("participants", "Participant names, comma-separated"),
    ),
)

CHUNK_SCHEMA = OutputSchema(
    name="ChunkSummary",
    fields=(
        SchemaField(
            "summary",
            "One sentence: what was asked and resolved. "
            "Example: 'User asked about X, learned Y.'",
        ),
        SchemaField("topics", "3-5 key topics, comma-separated. Pick specific terms only."),
        SchemaField("participants", "Participant names, comma-separated"),
    ),
)

MERGED_SCHEMA = OutputSchema(
    name="FinalMergedSummary",
    fields=(
        SchemaField("title", "Title in 3-5 words. Example: 'Building a REST API'"),
        SchemaField(
            "summary", "1-2 sentences max. What user accomplished. No flowery language."
        ),
        SchemaField("topics", "4-6 key topics, comma-separated"),
    ),
)

SINGLE_PASS_INSTRUCTIONS = (
    "Summarize chats in minimal words. State facts only. Never use: "
    '"comprehensive", "journey", "delved", "explored", "tackled".'
)
SINGLE_PASS_PROMPT = """Summarize this chat. What did the user want? What was the result?

{transcript}"""

CHUNK_INSTRUCTIONS = "Summarize in one sentence. Facts only. No flowery words."
CHUNK_PROMPT = """Summarize this part of a conversation (part {number} of {total}).

{transcript}"""

MERGE_INSTRUCTIONS = (
    "Merge summaries into 1-2 sentences. Facts only. "
    "Never use flowery or academic language."
)
MERGE_PROMPT = """Combine these conversation parts into one summary. Create a short, memorable title.

{parts}"""


def _truncate_words(text: str, limit: int) -> str:
    """First ``limit`` space-delimited words, with an ellipsis if cut."""
    words = [w for w in text.split(" ") if w]
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + ELLIPSIS


def split_into_chunks(
    messages: Sequence[Message],
    chunk_size: int = CHUNK_SIZE,
    max_chunks: int = MAX_CHUNKS,
) -> list[list[Message]]:
    """Split messages into contiguous chunks, keeping at most ``max_chunks``."""
    limit = min(len(messages), chunk_size * max_chunks)
    return [list(messages[i:i + chunk_size]) for i in range(0, limit, chunk_size)]


def extract_snippets(
    messages: Sequence[Message],
    count: int = SNIPPET_COUNT,
    word_limit: int = SNIPPET_WORDS,
) -> list[str]:
    """Short previews of the user's first messages.

    Truncation splits on spaces, so scripts without spaces between words
    are kept whole up to their first space.
    """
    user_messages = [m for m in messages if m.from_user][:count]
    return [_truncate_words(m.text, word_limit) for m in user_messages]


def generate_quick_title(first_message: str) -> str:
    """Title from the first few words of a message, without a model call."""
    return _truncate_words(first_message, QUICK_TITLE_WORDS)


def needs_summary(conversation: Conversation, messages: Sequence[Message]) -> bool:
    """Whether a conversation is long enough and not yet summarized."""
    return conversation.summary is None and len(messages) >= MIN_MESSAGES_FOR_SUMMARY


def empty_summary() -> ConversationSummary:
    """Placeholder summary for a conversation without messages."""
    return ConversationSummary(
        title="Empty Chat",
        summary="No messages yet.",
        topics=[],
        snippets=[],
        participants=[],
        message_count=0,
        chunk_summaries=None,
    )


class ChunkedSummarizer:
    """Summarizes conversations of any length into a bounded digest."""

    def __init__(
        self,
        client: GenerationClient,
        chunk_size: int = CHUNK_SIZE,
        max_chunks: int = MAX_CHUNKS,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the summarizer.

        Args:
            client: The generation collaborator.
            chunk_size: Messages per chunk; histories this short use one pass.
            max_chunks: Upper bound on chunks summarized per conversation.
            event_log: Optional structured event log.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if max_chunks < 1:
            raise ValueError("max_chunks must be at least 1")

        self.client = client
        self.chunk_size = chunk_size
        self.max_chunks = max_chunks
        self.event_log = event_log

    async def summarize(
        self,
        messages: Sequence[Message],
        conversation_id: str | None = None,
    ) -> ConversationSummary:
        """Summarize a conversation.

        Args:
            messages: The conversation history, oldest first.
            conversation_id: Only used for logging.

        Returns:
            The generated summary.

        Raises:
            GenerationError: If any generation call fails. Chunk results
                computed before the failure are discarded.
        """
        if not messages:
            return empty_summary()

        started = time.monotonic()
        if len(messages) <= self.chunk_size:
            logger.debug("Single-pass summary of %d messages", len(messages))
            summary = await self._summarize_single_pass(messages)
            strategy = "single_pass"
        else:
            logger.debug("Chunked summary of %d messages", len(messages))
            summary = await self._summarize_chunked(messages)
            strategy = "chunked"

        if self.event_log:
            self.event_log.log_summary(
                strategy,
                len(messages),
                conversation_id=conversation_id,
                chunks=len(summary.chunk_summaries) if summary.chunk_summaries else None,
                duration_ms=(time.monotonic() - started) * 1000,
            )
        return summary

    async def _summarize_single_pass(self, messages: Sequence[Message]) -> ConversationSummary:
        transcript = format_messages(messages)
        result = await self._complete(
            SINGLE_PASS_INSTRUCTIONS,
            SINGLE_PASS_PROMPT.format(transcript=transcript),
            SINGLE_PASS_SCHEMA,
        )

        return ConversationSummary(
            title=result["title"].strip(),
            summary=result["summary"].strip(),
            topics=dedupe_topics(parse_comma_separated(result["topics"])),
            snippets=extract_snippets(messages),
            participants=parse_comma_separated(result["participants"]),
            message_count=len(messages),
            chunk_summaries=None,
            original_token_count=estimate_tokens(transcript),
        )

    async def _summarize_chunked(self, messages: Sequence[Message]) -> ConversationSummary:
        chunks = split_into_chunks(messages, self.chunk_size, self.max_chunks)
        if len(messages) > self.chunk_size * self.max_chunks:
            logger.info(
                "Summarizing first %d of %d messages",
                self.chunk_size * self.max_chunks,
                len(messages),
            )

        chunk_summaries: list[str] = []
        participants: dict[str, None] = {}

        for number, chunk in enumerate(chunks, start=1):
            logger.debug("Summarizing chunk %d/%d (%d messages)", number, len(chunks), len(chunk))
            result = await self._complete(
                CHUNK_INSTRUCTIONS,
                CHUNK_PROMPT.format(
                    number=number, total=len(chunks), transcript=format_messages(chunk)
                ),
                CHUNK_SCHEMA,
            )
            chunk_summaries.append(result["summary"].strip())
            for name in parse_comma_separated(result["participants"]):
                participants.setdefault(name, None)

        parts = "\n".join(
            f"Part {number}: {text}" for number, text in enumerate(chunk_summaries, start=1)
        )
        merged = await self._complete(
            MERGE_INSTRUCTIONS, MERGE_PROMPT.format(parts=parts), MERGED_SCHEMA
        )

        covered = [m for chunk in chunks for m in chunk]
        return ConversationSummary(
            title=merged["title"].strip(),
            summary=merged["summary"].strip(),
            topics=dedupe_topics(parse_comma_separated(merged["topics"])),
            snippets=extract_snippets(messages),
            participants=list(participants),
            message_count=len(messages),
            chunk_summaries=chunk_summaries,
            original_token_count=estimate_tokens(format_messages(covered)),
        )

    async def _complete(
        self, instructions: str, prompt: str, schema: OutputSchema
    ) -> dict[str, Any]:
        result = await self.client.complete(instructions, prompt, schema)
        return schema.coerce(result)
