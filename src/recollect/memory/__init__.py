"""Memory module for durable user facts."""

from .extractor import FactExtractor
from .gate import FactGate, is_duplicate
from .manager import MemoryManager
from .store import MemoryStore

__all__ = [
    "FactExtractor",
    "FactGate",
    "MemoryManager",
    "MemoryStore",
    "is_duplicate",
]
