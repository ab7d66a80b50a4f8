"""Tests for the JSONL event log."""

import json
import tempfile
from pathlib import Path

import pytest

from recollect.logging import JSONLLogger, LogEntry


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for logs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def logger(temp_log_dir: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=temp_log_dir)


def _entries(logger: JSONLLogger) -> list[dict]:
    with open(logger.log_path) as f:
        return [json.loads(line) for line in f]


def test_log_entry_to_dict():
    """Test LogEntry excludes None values."""
    entry = LogEntry(timestamp="2026-01-01T00:00:00Z", event="test")
    data = entry.to_dict()

    assert "timestamp" in data
    assert "event" in data
    assert "conversation_id" not in data  # None excluded
    assert "extra" not in data  # Empty dict excluded


def test_log_writes_jsonl(logger: JSONLLogger):
    """Test that logs are written in JSONL format."""
    logger.log("event1", conversation_id="123")
    logger.log("event2", conversation_id="456")

    entries = _entries(logger)
    assert [e["event"] for e in entries] == ["event1", "event2"]
    assert entries[0]["conversation_id"] == "123"


def test_log_context(logger: JSONLLogger):
    """Test logging an assembled context."""
    logger.log_context([18, 0, 12, 240], 270, conversation_id="c1")

    [entry] = _entries(logger)
    assert entry["event"] == "context_assembled"
    assert entry["tokens"] == 270
    assert entry["extra"]["layer_tokens"] == [18, 0, 12, 240]


def test_log_summary(logger: JSONLLogger):
    logger.log_summary("single_pass", 8, conversation_id="c1", duration_ms=12.5)

    [entry] = _entries(logger)
    assert entry["event"] == "summary_generated"
    assert entry["duration_ms"] == 12.5
    assert entry["extra"]["strategy"] == "single_pass"
    assert entry["extra"]["message_count"] == 8


def test_log_facts_saved(logger: JSONLLogger):
    logger.log_facts_saved(2, conversation_id="c1")

    [entry] = _entries(logger)
    assert entry["event"] == "facts_saved"
    assert entry["extra"]["count"] == 2


def test_log_generation_failed(logger: JSONLLogger):
    """Test logging a failed generation call."""
    logger.log_generation_failed("summary", "timeout", "timed out", conversation_id="c1")

    [entry] = _entries(logger)
    assert entry["event"] == "generation_failed"
    assert entry["error"] == "timed out"
    assert entry["extra"] == {"operation": "summary", "kind": "timeout"}


def test_set_conversation_id(logger: JSONLLogger):
    """Test that set_conversation_id applies to subsequent logs."""
    logger.set_conversation_id("conv-42")
    logger.log("event1")
    logger.log("event2", conversation_id="other")

    entries = _entries(logger)
    assert entries[0]["conversation_id"] == "conv-42"
    assert entries[1]["conversation_id"] == "other"


def test_rotation(temp_log_dir: Path):
    """Test log rotation when max size is exceeded."""
    logger = JSONLLogger(log_dir=temp_log_dir, max_size_mb=0.001)  # ~1KB

    for i in range(100):
        logger.log(f"event_{i}", data="x" * 100)

    log_files = list(temp_log_dir.glob("events*.jsonl"))
    assert len(log_files) >= 2


def test_rotation_keeps_newest_backups(temp_log_dir: Path):
    logger = JSONLLogger(log_dir=temp_log_dir, max_size_mb=0.001, backup_count=2)

    for i in range(200):
        logger.log(f"event_{i}", data="x" * 100)

    assert len(logger.rotated_files()) == 2
    assert logger.log_path.exists()


def test_none_extras_dropped(logger: JSONLLogger):
    logger.log_summary("single_pass", 8, chunks=None)

    [entry] = _entries(logger)
    assert "chunks" not in entry["extra"]
