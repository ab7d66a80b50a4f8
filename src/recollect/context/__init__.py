"""Context assembly: what the model sees for each request."""

from .assembler import ContextAssembler
from .budget import ContextBudget

__all__ = ["ContextAssembler", "ContextBudget"]
