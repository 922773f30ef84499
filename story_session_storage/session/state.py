"""Session state owned by a StorySession."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol import StoryListEntry


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of SessionState handed to listeners."""

    user_id: str | None
    stories: tuple[StoryListEntry, ...]
    current_story_id: str | None
    loading: bool
    saving: bool
    demo_mode: bool

    @property
    def busy(self) -> bool:
        """Whether controls that start an operation should be disabled."""
        return self.loading or self.saving

    @property
    def can_save_as(self) -> bool:
        return self.user_id is not None and self.current_story_id is not None


@dataclass
class SessionState:
    """Mutable state of one signed-in session.

    Invariant: demo_mode implies current_story_id is None.
    """

    user_id: str | None = None
    stories: list[StoryListEntry] = field(default_factory=list)
    current_story_id: str | None = None
    loading: bool = False
    saving: bool = False
    demo_mode: bool = False

    def clear_user(self) -> None:
        """Forget the identity and everything loaded for it."""
        self.user_id = None
        self.stories = []
        self.current_story_id = None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            user_id=self.user_id,
            stories=tuple(self.stories),
            current_story_id=self.current_story_id,
            loading=self.loading,
            saving=self.saving,
            demo_mode=self.demo_mode,
        )
