"""Conversation persistence: the conversation index, messages and summaries."""

import json
import logging
from pathlib import Path
from typing import Any

from .models import (
    NEW_CONVERSATION_TITLE,
    Conversation,
    ConversationSummary,
    Message,
    utcnow,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """Stores conversations as JSON files.

    Layout under ``root``::

        index.json            all conversations (metadata and summaries)
        messages/<id>.json    message history of one conversation

    Unreadable files are treated as empty so a corrupt file never blocks
    the chat.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.messages_dir = root / "messages"
        self.messages_dir.mkdir(parents=True, exist_ok=True)
        self._index: dict[str, Conversation] | None = None

    @property
    def index_path(self) -> Path:
        return self.root / "index.json"

    def _messages_file(self, conversation_id: str) -> Path:
        return self.messages_dir / f"{conversation_id}.json"

    def _read_json(self, path: Path) -> Any:
        """Read a JSON file, None if missing or unreadable."""
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None

    def _write_json(self, path: Path, data: Any) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _load_index(self) -> dict[str, Conversation]:
        """Load the conversation index, once."""
        if self._index is not None:
            return self._index

        self._index = {}
        data = self._read_json(self.index_path)
        if not isinstance(data, list):
            return self._index

        for item in data:
            try:
                conversation = Conversation.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid conversation entry: %s", e)
                continue
            self._index[conversation.id] = conversation
        return self._index

    def _save_index(self) -> None:
        index = self._load_index()
        self._write_json(self.index_path, [c.to_dict() for c in index.values()])

    def create_conversation(self, title: str = NEW_CONVERSATION_TITLE) -> Conversation:
        """Create and persist an empty conversation."""
        conversation = Conversation(title=title)
        self._load_index()[conversation.id] = conversation
        self._save_index()
        self._write_json(self._messages_file(conversation.id), [])
        logger.debug("Created conversation %s", conversation.id)
        return conversation

    def get(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by id, None if it doesn't exist."""
        return self._load_index().get(conversation_id)

    def list_conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        return sorted(self._load_index().values(), key=lambda c: c.updated_at, reverse=True)

    def load_conversation_summaries(self) -> list[Conversation]:
        """Conversations that have a summary, most recently updated first."""
        return [c for c in self.list_conversations() if c.summary is not None]

    def load_messages(self, conversation_id: str) -> list[Message]:
        """Message history of a conversation, oldest first."""
        data = self._read_json(self._messages_file(conversation_id))
        if not isinstance(data, list):
            return []

        try:
            return [Message.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid messages for %s: %s", conversation_id, e)
            return []

    def save_messages(self, conversation_id: str, messages: list[Message]) -> None:
        """Replace the stored history of a conversation."""
        self._write_json(
            self._messages_file(conversation_id), [m.to_dict() for m in messages]
        )

    def append_message(self, message: Message) -> Conversation | None:
        """Append a message and bump the conversation's count and timestamp.

        Returns:
            The updated conversation, or None if it was deleted meanwhile.
        """
        conversation = self.get(message.conversation_id)
        if conversation is None:
            logger.debug("Dropping message for missing conversation %s", message.conversation_id)
            return None

        messages = self.load_messages(conversation.id)
        messages.append(message)
        self.save_messages(conversation.id, messages)

        conversation.message_count = len(messages)
        conversation.updated_at = utcnow()
        self._save_index()
        return conversation

    def update_title(self, conversation_id: str, title: str) -> Conversation | None:
        """Rename a conversation."""
        conversation = self.get(conversation_id)
        if conversation is None:
            return None

        conversation.title = title
        self._save_index()
        return conversation

    def update_summary(
        self,
        conversation_id: str,
        summary: ConversationSummary,
    ) -> Conversation | None:
        """Attach a summary; a non-empty generated title replaces the current one."""
        conversation = self.get(conversation_id)
        if conversation is None:
            return None

        conversation.summary = summary
        if summary.title.strip():
            conversation.title = summary.title.strip()
        self._save_index()
        return conversation

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and its messages.

        Returns:
            True if the conversation existed.
        """
        index = self._load_index()
        if conversation_id not in index:
            return False

        del index[conversation_id]
        self._save_index()

        path = self._messages_file(conversation_id)
        if path.exists():
            path.unlink()
        return True
