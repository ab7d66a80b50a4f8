"""Engine configuration loader.

Loads configuration from ~/.recollect/config.json. Every key is optional;
missing or invalid values fall back to the defaults.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .context.budget import ContextBudget
from .llm import DEFAULT_MODEL
from .summary.summarizer import CHUNK_SIZE, MAX_CHUNKS

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".recollect"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.json"


@dataclass
class EngineConfig:
    """Configuration for the chat engine.

    Attributes:
        model: Groq model used for replies, summaries and extraction.
        data_dir: Where facts and conversations are stored.
        budget: Token budget for assembled contexts.
        chunk_size: Messages per summary chunk.
        max_chunks: Maximum chunks summarized per conversation.
        log_dir: Directory for the JSONL event log (``data_dir/logs`` if None).
    """

    model: str = DEFAULT_MODEL
    data_dir: Path = DEFAULT_DATA_DIR
    budget: ContextBudget = field(default_factory=ContextBudget)
    chunk_size: int = CHUNK_SIZE
    max_chunks: int = MAX_CHUNKS
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.log_dir is None:
            self.log_dir = self.data_dir / "logs"

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        if self.max_chunks < 1:
            raise ValueError("max_chunks must be at least 1")

    @property
    def facts_db_path(self) -> Path:
        return self.data_dir / "facts.db"

    @property
    def conversations_dir(self) -> Path:
        return self.data_dir / "conversations"


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load EngineConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "model": "llama-3.1-70b-versatile",
      "data_dir": "~/.recollect",
      "budget": {
        "total": 4096,
        "output_reserve": 1000,
        "facts": 400
      },
      "chunk_size": 20,
      "max_chunks": 10
    }
    ```

    ``GROQ_MODEL`` in the environment overrides ``model``.

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        EngineConfig instance with loaded values.

    Raises:
        ValueError: If the budget allocations are inconsistent.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
    else:
        try:
            with open(path, "r") as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        except OSError as e:
            logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        else:
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Config in %s is not an object. Using defaults.", path)

    config = _parse_config(data)

    env_model = os.environ.get("GROQ_MODEL")
    if env_model:
        config.model = env_model

    return config


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return default
    return value


def _parse_config(data: dict[str, Any]) -> EngineConfig:
    """Parse config dictionary into EngineConfig.

    Args:
        data: Parsed JSON data.

    Returns:
        EngineConfig instance.
    """
    model = data.get("model", DEFAULT_MODEL)
    if not isinstance(model, str) or not model:
        model = DEFAULT_MODEL

    data_dir: Path = DEFAULT_DATA_DIR
    if isinstance(data.get("data_dir"), str):
        data_dir = Path(data["data_dir"]).expanduser()

    log_dir: Path | None = None
    if isinstance(data.get("log_dir"), str):
        log_dir = Path(data["log_dir"]).expanduser()

    budget_data = data.get("budget", {})
    if not isinstance(budget_data, dict):
        budget_data = {}
    known = {f.name for f in fields(ContextBudget)}
    budget = ContextBudget(**{
        key: value for key, value in budget_data.items()
        if key in known and isinstance(value, int) and not isinstance(value, bool)
    })

    return EngineConfig(
        model=model,
        data_dir=data_dir,
        budget=budget,
        chunk_size=_positive_int(data.get("chunk_size"), CHUNK_SIZE),
        max_chunks=_positive_int(data.get("max_chunks"), MAX_CHUNKS),
        log_dir=log_dir,
    )


def save_config(config: EngineConfig, config_path: Path | None = None) -> None:
    """Save EngineConfig to a JSON file, writing only non-default values.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses DEFAULT_CONFIG_PATH if None.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {}

    if config.model != DEFAULT_MODEL:
        data["model"] = config.model

    if config.data_dir != DEFAULT_DATA_DIR:
        data["data_dir"] = str(config.data_dir)

    default_budget = ContextBudget()
    budget_data = {
        f.name: getattr(config.budget, f.name)
        for f in fields(ContextBudget)
        if getattr(config.budget, f.name) != getattr(default_budget, f.name)
    }
    if budget_data:
        data["budget"] = budget_data

    if config.chunk_size != CHUNK_SIZE:
        data["chunk_size"] = config.chunk_size

    if config.max_chunks != MAX_CHUNKS:
        data["max_chunks"] = config.max_chunks

    if config.log_dir and config.log_dir != config.data_dir / "logs":
        data["log_dir"] = str(config.log_dir)

    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
