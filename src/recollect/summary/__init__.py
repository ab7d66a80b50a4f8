"""Conversation summaries."""

from .summarizer import (
    MIN_MESSAGES_FOR_SUMMARY,
    ChunkedSummarizer,
    generate_quick_title,
    needs_summary,
    split_into_chunks,
)
from .topics import dedupe_topics

__all__ = [
    "MIN_MESSAGES_FOR_SUMMARY",
    "ChunkedSummarizer",
    "dedupe_topics",
    "generate_quick_title",
    "needs_summary",
    "split_into_chunks",
]
