"""Data models for conversations, summaries and user facts."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .tokens import estimate_display_tokens

NEW_CONVERSATION_TITLE = "New Chat"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a new random identifier."""
    return uuid.uuid4().hex


class FactCategory(Enum):
    """Closed set of fact categories."""

    PERSONAL_INFO = "Personal Info"
    PREFERENCES = "Preferences"
    GOALS = "Goals"
    CONTEXT = "Context"
    INSTRUCTIONS = "Instructions"

    @classmethod
    def parse(cls, label: str) -> FactCategory | None:
        """Parse a category label as written by the model.

        Accepts the camelCase keys used in extraction prompts
        (``personalInfo``) as well as the display values.

        Returns:
            The category, or None if the label is unknown.
        """
        normalized = label.strip().lower().replace(" ", "").replace("_", "")
        for category in cls:
            if normalized == category.value.lower().replace(" ", ""):
                return category
        return None


class FactSource(Enum):
    """Provenance of a fact."""

    AUTO = "auto"
    MANUAL = "manual"
    EDITED = "edited"


@dataclass(frozen=True)
class Fact:
    """A durable statement about the user.

    Attributes:
        category: One of the fixed fact categories.
        content: The fact text.
        confidence: Confidence score in [0, 1].
        source: 'auto' for extracted, 'manual' for user-created, 'edited' after a user edit.
        conversation_id: Conversation the fact was extracted from (auto facts only).
        verified: Whether the user confirmed the fact.
        id: Stable identifier.
        created_at: When the fact was created.
        updated_at: When the fact was last changed.
    """

    category: FactCategory
    content: str
    confidence: float = 0.8
    source: FactSource = FactSource.MANUAL
    conversation_id: str | None = None
    verified: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Message:
    """A single chat message.

    ``sender_name`` is only set for multi-party conversations; otherwise the
    sender is rendered as User or Assistant.
    """

    conversation_id: str
    text: str
    from_user: bool
    sender_name: str | None = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def sender(self) -> str:
        """Display name of the sender."""
        if self.sender_name:
            return self.sender_name
        return "User" if self.from_user else "Assistant"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "text": self.text,
            "from_user": self.from_user,
            "sender_name": self.sender_name,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            text=data["text"],
            from_user=data["from_user"],
            sender_name=data.get("sender_name"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class ConversationSummary:
    """Generated digest of one conversation.

    ``chunk_summaries`` is only populated when the chunked strategy was used.
    """

    title: str
    summary: str
    topics: list[str] = field(default_factory=list)
    snippets: list[str] = field(default_factory=list)
    participants: list[str] = field(default_factory=list)
    message_count: int = 0
    chunk_summaries: list[str] | None = None
    original_token_count: int = 0
    generated_at: datetime = field(default_factory=utcnow)

    @property
    def summary_token_count(self) -> int:
        """Tokens this summary costs when sent to the model (title + body)."""
        return estimate_display_tokens(self.title + self.summary)

    @property
    def compression_percentage(self) -> int:
        """How much smaller the summary is than the source, 0-100."""
        if self.original_token_count <= 0:
            return 0
        ratio = self.summary_token_count / self.original_token_count
        return max(0, int((1.0 - ratio) * 100))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "summary": self.summary,
            "topics": list(self.topics),
            "snippets": list(self.snippets),
            "participants": list(self.participants),
            "message_count": self.message_count,
            "chunk_summaries": (
                list(self.chunk_summaries) if self.chunk_summaries is not None else None
            ),
            "original_token_count": self.original_token_count,
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationSummary:
        """Create from dictionary."""
        return cls(
            title=data["title"],
            summary=data["summary"],
            topics=list(data.get("topics", [])),
            snippets=list(data.get("snippets", [])),
            participants=list(data.get("participants", [])),
            message_count=data.get("message_count", 0),
            chunk_summaries=data.get("chunk_summaries"),
            original_token_count=data.get("original_token_count", 0),
            generated_at=datetime.fromisoformat(data["generated_at"]),
        )


@dataclass
class Conversation:
    """Index entry for a conversation."""

    id: str = field(default_factory=new_id)
    title: str = NEW_CONVERSATION_TITLE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    message_count: int = 0
    summary: ConversationSummary | None = None

    @property
    def preview_text(self) -> str:
        """First user snippet if summarized, else the title."""
        if self.summary and self.summary.snippets:
            return self.summary.snippets[0]
        return self.title

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "message_count": self.message_count,
            "summary": self.summary.to_dict() if self.summary else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Conversation:
        """Create from dictionary."""
        summary = data.get("summary")
        return cls(
            id=data["id"],
            title=data.get("title", NEW_CONVERSATION_TITLE),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            message_count=data.get("message_count", 0),
            summary=ConversationSummary.from_dict(summary) if summary else None,
        )


@dataclass(frozen=True)
class AssembledContext:
    """The four prompt layers and their total estimated cost."""

    session_metadata: str
    user_memory: str
    recent_conversations: str
    current_messages: str
    estimated_tokens: int

    @property
    def layers(self) -> list[str]:
        """All four layers in prompt order."""
        return [
            self.session_metadata,
            self.user_memory,
            self.recent_conversations,
            self.current_messages,
        ]

    @property
    def full_prompt(self) -> str:
        """Non-empty layers joined by a blank line."""
        return "\n\n".join(layer for layer in self.layers if layer)


def format_messages(messages: Sequence[Message]) -> str:
    """Render messages as 'sender: text' lines."""
    return "\n".join(f"{m.sender}: {m.text}" for m in messages)
