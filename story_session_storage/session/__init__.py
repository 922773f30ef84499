"""
Story session state machine.

StorySession owns the per-user SessionState and sequences load, save and
delete intents against a StoryStore.
"""

from .controller import StorySession
from .state import SessionSnapshot, SessionState

__all__ = ["SessionSnapshot", "SessionState", "StorySession"]
