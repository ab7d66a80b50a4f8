"""JSONL event log for the memory engine.

One JSON object per line in ``events.jsonl``. The file is rotated once it
grows past ``max_size_mb`` and only the newest ``backup_count`` rotated files
are kept.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

DEFAULT_LOG_DIR = Path.home() / ".recollect" / "logs"


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    conversation_id: str | None = None
    duration_ms: float | None = None
    tokens: int | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Writes engine events as JSON lines."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
        backup_count: int = 5,
    ) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.backup_count = backup_count
        self._conversation_id: str | None = None

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.filename

    def set_conversation_id(self, conversation_id: str | None) -> None:
        """Attach a conversation id to events that don't pass their own."""
        self._conversation_id = conversation_id

    def rotated_files(self) -> list[Path]:
        """Rotated log files, oldest first."""
        return sorted(self.log_dir.glob(f"{self.log_path.stem}_*.jsonl"))

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self.max_size_bytes:
            return

        suffix = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        self.log_path.rename(self.log_dir / f"{self.log_path.stem}_{suffix}.jsonl")

        backups = self.rotated_files()
        for old in backups[:max(len(backups) - self.backup_count, 0)]:
            old.unlink(missing_ok=True)

    def log(
        self,
        event: str,
        *,
        conversation_id: str | None = None,
        duration_ms: float | None = None,
        tokens: int | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Append one event. ``None`` values in ``extra`` are dropped."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            conversation_id=conversation_id or self._conversation_id,
            duration_ms=duration_ms,
            tokens=tokens,
            error=error,
            extra={k: v for k, v in extra.items() if v is not None},
        )

        self._rotate_if_needed()
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log_context(
        self,
        layer_tokens: list[int],
        total_tokens: int,
        *,
        conversation_id: str | None = None,
    ) -> None:
        """Log an assembled context and its per-layer cost."""
        self.log(
            "context_assembled",
            conversation_id=conversation_id,
            tokens=total_tokens,
            layer_tokens=layer_tokens,
        )

    def log_summary(
        self,
        strategy: str,
        message_count: int,
        *,
        conversation_id: str | None = None,
        chunks: int | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self.log(
            "summary_generated",
            conversation_id=conversation_id,
            duration_ms=duration_ms,
            strategy=strategy,
            message_count=message_count,
            chunks=chunks,
        )

    def log_facts_saved(self, count: int, *, conversation_id: str | None = None) -> None:
        self.log("facts_saved", conversation_id=conversation_id, count=count)

    def log_generation_failed(
        self,
        operation: str,
        kind: str,
        error: str,
        *,
        conversation_id: str | None = None,
    ) -> None:
        """Log a failed call to the generation collaborator."""
        self.log(
            "generation_failed",
            conversation_id=conversation_id,
            error=error,
            operation=operation,
            kind=kind,
        )

