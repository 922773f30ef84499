"""Ownership-scoped story persistence."""

from .store import StoryStore

__all__ = ["StoryStore"]
