"""Recollect: long-term memory for chat conversations."""

__version__ = "0.1.0"
