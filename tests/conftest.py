"""
Shared test configuration and fixtures.

Provides an in-memory backend, a StoryStore with a deterministic clock,
a recording editor double and a demo story laid out on disk.
"""

import itertools
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from story_session_storage import (
    DEMO_STORY,
    DemoDocumentLoader,
    LoadMeta,
    MemoryDocumentStore,
    SessionSnapshot,
    StoryDocument,
    StorySession,
    StoryStore,
)

DEMO_DOCUMENT = {
    "pageTitle": "A Walk Through the Dunes",
    "project": "demo",
    "blocks": [
        {"type": "hero", "title": "Dunes"},
        {"type": "gallery", "media": [{"src": "dune.jpg", "type": "image", "caption": ""}]},
    ],
}


class TickingClock:
    """Clock returning strictly increasing ISO timestamps."""

    def __init__(self) -> None:
        self._ticks = itertools.count()

    def __call__(self) -> str:
        tick = next(self._ticks)
        return f"2025-03-01T10:{tick // 60:02d}:{tick % 60:02d}+00:00"


@dataclass
class RecordingEditor:
    """Editor double that records every callback from the session."""

    document: dict[str, Any] = field(
        default_factory=lambda: {"pageTitle": "", "project": "", "blocks": []}
    )
    loads: list[tuple[StoryDocument, LoadMeta]] = field(default_factory=list)
    resets: int = 0
    errors: list[tuple[Exception, str]] = field(default_factory=list)
    snapshots: list[SessionSnapshot] = field(default_factory=list)
    confirm_answer: bool = True
    prompt_answer: str | None = None
    prompts: list[tuple[str, str]] = field(default_factory=list)

    def on_load(self, document: StoryDocument, meta: LoadMeta) -> None:
        self.loads.append((document, meta))
        self.document = document.to_dict()

    def on_new(self) -> None:
        self.resets += 1
        self.document = {"pageTitle": "", "project": "", "blocks": []}

    def get_state(self) -> dict[str, Any]:
        return self.document

    def confirm(self, message: str) -> bool:
        return self.confirm_answer

    def prompt(self, message: str, default: str) -> str | None:
        self.prompts.append((message, default))
        return self.prompt_answer

    def on_error(self, error: Exception, action: str) -> None:
        self.errors.append((error, action))

    def render(self, snapshot: SessionSnapshot) -> None:
        self.snapshots.append(snapshot)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def backend() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def store(backend: MemoryDocumentStore, clock: TickingClock) -> StoryStore:
    return StoryStore(backend, clock=clock)


@pytest.fixture
def demo_root(tmp_path: Path) -> Path:
    """Directory holding projects/__demo__/story.json."""
    demo_dir = tmp_path / "projects" / DEMO_STORY.project_dir
    demo_dir.mkdir(parents=True)
    (demo_dir / "story.json").write_text(json.dumps(DEMO_DOCUMENT))
    return tmp_path


@pytest.fixture
def editor() -> RecordingEditor:
    return RecordingEditor()


SessionFactory = Callable[..., StorySession]


@pytest.fixture
def make_session(editor: RecordingEditor, demo_root: Path) -> SessionFactory:
    """Build a session wired to the recording editor.

    Keyword arguments override the constructor arguments.
    """

    def factory(store: StoryStore, **overrides: Any) -> StorySession:
        kwargs: dict[str, Any] = {
            "demo_loader": DemoDocumentLoader(demo_root),
            "on_load": editor.on_load,
            "on_new": editor.on_new,
            "get_state": editor.get_state,
            "confirm": editor.confirm,
            "prompt": editor.prompt,
            "on_error": editor.on_error,
        }
        kwargs.update(overrides)
        session = StorySession(store, **kwargs)
        session.subscribe(editor.render)
        return session

    return factory


@pytest.fixture
def session(store: StoryStore, make_session: SessionFactory) -> StorySession:
    return make_session(store)


@pytest.fixture
async def alice_session(
    session: StorySession, editor: RecordingEditor
) -> AsyncIterator[StorySession]:
    """Session with alice signed in and the notification log cleared."""
    await session.set_user("alice")
    editor.snapshots.clear()
    yield session
