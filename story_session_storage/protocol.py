"""
Core data types for story storage.

This module defines the persisted Story record, its lightweight list
projection, the bundled demo entry, the editor document exchanged with
the presentation layer, and the tagged result returned by StoryStore.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

from .exceptions import (
    BackendUnavailableError,
    DemoFetchError,
    StoryNotFoundError,
    StoryStorageError,
    StoryValidationError,
)

# Table holding story records in every backend
STORIES_TABLE = "stories"

DEFAULT_TITLE = "Untitled Story"
COPY_SUFFIX = " (copy)"

# Sentinel id of the bundled demo story, also its directory under projects/
DEMO_ID = "__demo__"

# Columns returned for the story selector (no blocks)
LIST_COLUMNS = ("id", "title", "project", "created_at", "updated_at")


def utc_now() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Persisted Types
# =============================================================================


@dataclass
class Story:
    """A persisted story owned by a single user."""

    title: str
    user_id: str
    project: str = ""
    blocks: list[dict[str, Any]] = field(default_factory=list)
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a storage record."""
        return {
            "id": self.id,
            "title": self.title,
            "project": self.project,
            "blocks": self.blocks,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Story":
        """Create from a storage record."""
        return cls(
            id=data.get("id"),
            title=data.get("title") or DEFAULT_TITLE,
            project=data.get("project") or "",
            blocks=list(data.get("blocks") or []),
            user_id=data["user_id"],
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class StoryListEntry:
    """Projection of a Story used by the story selector."""

    id: str
    title: str
    project: str
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoryListEntry":
        return cls(
            id=data["id"],
            title=data.get("title") or DEFAULT_TITLE,
            project=data.get("project") or "",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class DemoStory:
    """The read-only story bundled with the application.

    It is never written to a backend; opening it reads a static document
    from ``projects/<project_dir>/story.json``, where project_dir defaults
    to the sentinel id.
    """

    id: str = DEMO_ID
    title: str = "Demo Story"
    read_only: bool = True
    updated_at: str = "2025-01-01T00:00:00+00:00"
    project_dir: str = DEMO_ID

    def as_list_entry(self) -> StoryListEntry:
        return StoryListEntry(
            id=self.id,
            title=self.title,
            project="",
            created_at=self.updated_at,
            updated_at=self.updated_at,
        )


DEMO_STORY = DemoStory()
DEMO_STORY_ID = DEMO_STORY.id


# =============================================================================
# Editor Exchange Types
# =============================================================================


@dataclass
class StoryDocument:
    """The editor document as seen by the session.

    The editor speaks camelCase (``pageTitle``); both spellings are accepted.
    """

    page_title: str = ""
    project: str = ""
    blocks: list[dict[str, Any]] = field(default_factory=list)

    @property
    def title(self) -> str:
        """Title used when saving: page title, else project, else the default."""
        return self.page_title or self.project or DEFAULT_TITLE

    def to_dict(self) -> dict[str, Any]:
        return {"pageTitle": self.page_title, "project": self.project, "blocks": self.blocks}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoryDocument":
        page_title = data.get("pageTitle", data.get("page_title")) or ""
        return cls(
            page_title=page_title,
            project=data.get("project") or "",
            blocks=list(data.get("blocks") or []),
        )

    @classmethod
    def from_story(cls, story: Story) -> "StoryDocument":
        return cls(page_title=story.title, project=story.project, blocks=story.blocks)

    @classmethod
    def coerce(cls, state: "StoryDocument | Mapping[str, Any] | None") -> "StoryDocument":
        """Accept whatever the editor's get_state callback returned."""
        if isinstance(state, StoryDocument):
            return state
        return cls.from_dict(state or {})


@dataclass(frozen=True)
class LoadMeta:
    """Metadata passed to the editor alongside a loaded document."""

    is_demo: bool
    story_id: str | None = None
    title: str | None = None


# =============================================================================
# Results
# =============================================================================


class FailureKind(Enum):
    """User-facing failure categories."""

    BACKEND_UNAVAILABLE = "backend_unavailable"
    NOT_FOUND = "not_found"  # also covers "not owned"
    NETWORK = "network"
    VALIDATION = "validation"


def failure_kind(error: StoryStorageError) -> FailureKind:
    """Classify a storage error."""
    if isinstance(error, BackendUnavailableError):
        return FailureKind.BACKEND_UNAVAILABLE
    if isinstance(error, StoryNotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(error, DemoFetchError):
        return FailureKind.NETWORK
    if isinstance(error, StoryValidationError):
        return FailureKind.VALIDATION
    return FailureKind.BACKEND_UNAVAILABLE


T = TypeVar("T")


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Tagged outcome of a StoryStore operation.

    Exactly one of ``data`` (on success) or ``error`` is meaningful.
    """

    data: T | None = None
    error: StoryStorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> FailureKind | None:
        if self.error is None:
            return None
        return failure_kind(self.error)

    @classmethod
    def success(cls, data: T) -> "StoreResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: StoryStorageError) -> "StoreResult[T]":
        return cls(error=error)
