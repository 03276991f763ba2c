"""Context building module."""

from .builder import ContextBuilder, merge_turns

__all__ = [
    "ContextBuilder",
    "merge_turns",
]
