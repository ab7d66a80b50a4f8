"""Chat session: the message-send flow around the memory engine."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .context import ContextAssembler
from .conversations import ConversationStore
from .llm import GenerationClient, GenerationError, GenerationErrorKind
from .memory import MemoryManager
from .models import (
    NEW_CONVERSATION_TITLE,
    AssembledContext,
    Conversation,
    ConversationSummary,
    Message,
    format_messages,
)
from .summary import ChunkedSummarizer, generate_quick_title, needs_summary
from .tokens import estimate_tokens

if TYPE_CHECKING:
    from .logging import JSONLLogger

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 10_000
MAX_TITLE_LENGTH = 50
TITLE_TRANSCRIPT_MESSAGES = 6

REPLY_INSTRUCTIONS = """You are a helpful, friendly assistant with memory of past conversations.

Guidelines:
- ALWAYS respond to the LAST user message in the conversation.
- Be concise and conversational. No markdown formatting, bullet points, or headers.
- Use the User Memory and Recent Conversations context to personalize responses.
- Reference remembered facts naturally when relevant, but don't force them into every response.
- Never say "would you like me to", "shall I", "let me know if you want me to" - just do it or answer directly.
- Keep responses brief unless the user asks for detail."""

TITLE_INSTRUCTIONS = (
    "Generate a very short title (2-5 words) that summarizes this conversation.\n"
    "Respond with ONLY the title, no quotes, no punctuation at the end.\n"
    'Examples of good titles: "Swift async await help", "Recipe for pasta", '
    '"Math homework help"'
)

GUARDRAIL_REPLY = "I can't respond to that due to content restrictions. Try rephrasing your question."
CONTEXT_WINDOW_REPLY = "The conversation is too long. Try starting a new chat."
GENERIC_ERROR_REPLY = "Sorry, I couldn't process that request."


def error_reply(kind: GenerationErrorKind) -> str:
    """Assistant text shown in place of a reply that failed."""
    if kind is GenerationErrorKind.GUARDRAIL_VIOLATION:
        return GUARDRAIL_REPLY
    if kind is GenerationErrorKind.CONTEXT_WINDOW_EXCEEDED:
        return CONTEXT_WINDOW_REPLY
    return GENERIC_ERROR_REPLY


@dataclass
class SendResult:
    """Result of sending one user message."""

    reply: Message
    context: AssembledContext
    error: GenerationErrorKind | None = None


class ChatSession:
    """One user's chat: an active conversation plus shared memory.

    Fact extraction runs in the background after every user message; the
    reply never waits for it. Summaries are generated when the user leaves
    a conversation, or lazily for any conversation still missing one.
    """

    def __init__(
        self,
        client: GenerationClient,
        conversations: ConversationStore,
        memory: MemoryManager,
        summarizer: ChunkedSummarizer,
        assembler: ContextAssembler | None = None,
        event_log: JSONLLogger | None = None,
        on_facts_saved: Callable[[int], None] | None = None,
    ) -> None:
        self.client = client
        self.conversations = conversations
        self.memory = memory
        self.summarizer = summarizer
        self.assembler = assembler or ContextAssembler()
        self.event_log = event_log
        self.on_facts_saved = on_facts_saved
        self.conversation_id: str | None = None

    @property
    def conversation(self) -> Conversation | None:
        """The active conversation, None until the first message."""
        if self.conversation_id is None:
            return None
        return self.conversations.get(self.conversation_id)

    def open(self, conversation_id: str) -> Conversation | None:
        """Make an existing conversation the active one."""
        conversation = self.conversations.get(conversation_id)
        if conversation is not None:
            self.conversation_id = conversation.id
            if self.event_log:
                self.event_log.set_conversation_id(conversation.id)
        return conversation

    async def start_new(self) -> None:
        """Leave the active conversation, summarizing it if needed."""
        if self.conversation_id is not None:
            await self.summarize_if_needed(self.conversation_id)
        self.conversation_id = None
        if self.event_log:
            self.event_log.set_conversation_id(None)

    def build_context(self, conversation: Conversation | None = None) -> AssembledContext:
        """Assemble the prompt for a conversation (the active one by default)."""
        conversation = conversation or self.conversation
        messages = self.conversations.load_messages(conversation.id) if conversation else []

        return self.assembler.assemble(
            conversation,
            self.memory.facts_for_context(),
            self.conversations.load_conversation_summaries(),
            messages,
        )

    async def send(self, text: str) -> SendResult:
        """Send a user message and get the assistant's reply.

        Args:
            text: The user's message; truncated to MAX_MESSAGE_LENGTH.

        Returns:
            The reply. Generation failures are turned into an assistant
            message and reported through ``SendResult.error``.

        Raises:
            ValueError: If the message is empty.
        """
        text = text.strip()[:MAX_MESSAGE_LENGTH]
        if not text:
            raise ValueError("Message is empty")

        conversation = self.conversation
        if conversation is None:
            conversation = self.conversations.create_conversation()
            self.open(conversation.id)

        self.conversations.append_message(
            Message(conversation_id=conversation.id, text=text, from_user=True)
        )

        context = self.build_context(conversation)
        if self.event_log:
            self.event_log.log_context(
                [estimate_tokens(layer) for layer in context.layers],
                context.estimated_tokens,
                conversation_id=conversation.id,
            )

        error: GenerationErrorKind | None = None
        started = time.monotonic()
        try:
            reply_text = str(await self.client.complete(REPLY_INSTRUCTIONS, context.full_prompt))
            reply_text = reply_text.strip()
        except GenerationError as e:
            logger.warning("Reply generation failed (%s): %s", e.kind.value, e)
            if self.event_log:
                self.event_log.log_generation_failed(
                    "reply", e.kind.value, str(e), conversation_id=conversation.id
                )
            error = e.kind
            reply_text = error_reply(e.kind)
        logger.debug("Reply took %.0f ms", (time.monotonic() - started) * 1000)

        reply = Message(conversation_id=conversation.id, text=reply_text, from_user=False)
        updated = self.conversations.append_message(reply)

        if error is None and updated and updated.title == NEW_CONVERSATION_TITLE:
            await self.generate_title(updated.id)

        self.memory.schedule_extraction(text, conversation.id, on_saved=self.on_facts_saved)
        return SendResult(reply=reply, context=context, error=error)

    async def generate_title(self, conversation_id: str) -> str | None:
        """Title a conversation from its first messages.

        Falls back to the first words of the first user message when
        generation fails.
        """
        messages = self.conversations.load_messages(conversation_id)
        if len(messages) < 2:
            return None

        try:
            title = str(await self.client.complete(
                TITLE_INSTRUCTIONS,
                format_messages(messages[:TITLE_TRANSCRIPT_MESSAGES]),
            )).strip()
        except GenerationError as e:
            logger.warning("Title generation failed (%s): %s", e.kind.value, e)
            first = next((m for m in messages if m.from_user), None)
            if first is None:
                return None
            title = generate_quick_title(first.text)
        else:
            if not title or len(title) > MAX_TITLE_LENGTH:
                return None

        self.conversations.update_title(conversation_id, title)
        return title

    async def summarize_if_needed(self, conversation_id: str) -> ConversationSummary | None:
        """Summarize a conversation that is long enough and has no summary yet.

        Returns:
            The new summary, or None if none was needed or generation failed.
            A failed summary is retried by the next call.
        """
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.summary is not None:
            return None

        messages = self.conversations.load_messages(conversation_id)
        if not needs_summary(conversation, messages):
            return None

        try:
            summary = await self.summarizer.summarize(messages, conversation_id=conversation_id)
        except GenerationError as e:
            logger.warning(
                "Summary for %s failed (%s): %s", conversation_id, e.kind.value, e
            )
            if self.event_log:
                self.event_log.log_generation_failed(
                    "summary", e.kind.value, str(e), conversation_id=conversation_id
                )
            return None

        self.conversations.update_summary(conversation_id, summary)
        return summary

    async def generate_missing_summaries(self) -> int:
        """Summarize every eligible conversation. Returns how many were summarized."""
        count = 0
        for conversation in self.conversations.list_conversations():
            if conversation.id == self.conversation_id:
                continue
            if await self.summarize_if_needed(conversation.id):
                count += 1
        return count
