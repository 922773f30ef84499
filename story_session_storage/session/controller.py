"""
Story session controller.

StorySession mediates between the editor's in-memory document, a
StoryStore and a presentation layer. It owns a single SessionState and
publishes an immutable snapshot to subscribed listeners after every
transition.

Concurrency model:
    All intents run on one event loop. Each intent sets its in-flight flag
    before its first ``await`` and clears it on every exit path, so the
    flags double as single-flight guards:

    - refresh_list: ignored while loading
    - open: ignored while loading or saving
    - save / save_as / duplicate: ignored while saving
    - delete (holds saving) / start_new: ignored while loading or saving

    A continuation that resumes after the identity changed discards its
    result and reloads the list for the new user.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from ..demo.loader import DemoDocumentLoader
from ..exceptions import DemoFetchError, StoryStorageError
from ..logging_utils import StoryLoggerAdapter
from ..protocol import (
    COPY_SUFFIX,
    DEMO_STORY,
    DemoStory,
    LoadMeta,
    StoryDocument,
    StoryListEntry,
    failure_kind,
)
from ..stories.store import StoryStore
from .state import SessionSnapshot, SessionState

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]
LoadCallback = Callable[[StoryDocument, LoadMeta], None]
ErrorCallback = Callable[[StoryStorageError, str], None]
EditorState = StoryDocument | Mapping[str, Any]

DELETE_CONFIRMATION = "Delete this story? This cannot be undone."
SAVE_AS_PROMPT = "Enter a name for the new story:"


def _refuse(message: str) -> bool:
    return False


def _cancel(message: str, default: str) -> str | None:
    return None


class StorySession:
    """Stateful controller for one user's stories.

    Example:
        >>> session = StorySession(
        ...     StoryStore(MemoryDocumentStore()),
        ...     on_load=editor.load,
        ...     on_new=editor.reset,
        ...     get_state=editor.document,
        ...     confirm=dialogs.confirm,
        ...     prompt=dialogs.prompt,
        ... )
        >>> unsubscribe = session.subscribe(view.render)
        >>> await session.set_user("alice")
        >>> await session.save()
    """

    def __init__(
        self,
        store: StoryStore,
        demo_loader: DemoDocumentLoader | None = None,
        on_load: LoadCallback | None = None,
        on_new: Callable[[], None] | None = None,
        get_state: Callable[[], EditorState] | None = None,
        confirm: Callable[[str], bool] | None = None,
        prompt: Callable[[str, str], str | None] | None = None,
        on_error: ErrorCallback | None = None,
        demo: DemoStory = DEMO_STORY,
    ) -> None:
        """
        Args:
            store: Story persistence
            demo_loader: Fetches the bundled demo document
            on_load: Called when a story (real or demo) becomes the active document
            on_new: Called when the editor should reset to a blank document
            get_state: Returns the editor's current document
            confirm: Yes/no gate for delete; refuses when not supplied
            prompt: Text prompt for the save-as title; cancels when not supplied
            on_error: Receives user-visible failures with the failed action name
            demo: The read-only demo entry
        """
        self.store = store
        self.demo_loader = demo_loader or DemoDocumentLoader(project_dir=demo.project_dir)
        self.on_load: LoadCallback = on_load or (lambda document, meta: None)
        self.on_new: Callable[[], None] = on_new or (lambda: None)
        self.get_state: Callable[[], EditorState] = get_state or (lambda: {})
        self.confirm = confirm or _refuse
        self.prompt = prompt or _cancel
        self.on_error = on_error
        self.demo = demo

        self._state = SessionState()
        self._listeners: list[Listener] = []

    # =========================================================================
    # Observation
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return self._state.snapshot()

    @property
    def user_id(self) -> str | None:
        return self._state.user_id

    @property
    def stories(self) -> tuple[StoryListEntry, ...]:
        return tuple(self._state.stories)

    @property
    def current_story_id(self) -> str | None:
        return self._state.current_story_id

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def saving(self) -> bool:
        return self._state.saving

    @property
    def demo_mode(self) -> bool:
        return self._state.demo_mode

    @property
    def demo_entry(self) -> StoryListEntry:
        """Selector entry for the always-available demo story."""
        return self.demo.as_list_entry()

    def _notify(self) -> None:
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    @property
    def _log(self) -> StoryLoggerAdapter:
        return StoryLoggerAdapter(logger, {"user_id": self._state.user_id})

    def _report(self, action: str, error: StoryStorageError) -> None:
        self._log.warning(
            f"Story {action} failed: {error.message}",
            extra={"action": action, "kind": failure_kind(error).value},
        )
        if self.on_error:
            self.on_error(error, action)

    @contextmanager
    def _in_flight(self, flag: str) -> Iterator[None]:
        """Hold ``loading`` or ``saving`` across one awaited call.

        The flag is cleared on every exit path. On a normal exit the caller
        applies the result and notifies; if the call raised (or was
        cancelled) the cleared flag is published here.
        """
        setattr(self._state, flag, True)
        self._notify()
        completed = False
        try:
            yield
            completed = True
        finally:
            setattr(self._state, flag, False)
            if not completed:
                self._notify()

    # =========================================================================
    # Identity and listing
    # =========================================================================

    async def set_user(self, user_id: str | None) -> None:
        """Replace the signed-in identity.

        Switching to a different user drops the previous user's list and
        open story before loading the new list. If a load is in flight its
        result is discarded and the list is reloaded when it returns.
        """
        state = self._state

        if not user_id:
            state.clear_user()
            self._notify()
            return

        if state.user_id and state.user_id != user_id:
            state.clear_user()
        state.user_id = user_id

        if state.loading:
            self._notify()
            return
        await self.refresh_list()

    async def refresh_list(self) -> None:
        """Reload the story list; on failure the previous list stays.

        Ignored while another load is in flight.
        """
        state = self._state
        if not state.user_id or state.loading:
            return

        user_id = state.user_id
        with self._in_flight("loading"):
            result = await self.store.list(user_id)

        if state.user_id == user_id:
            if result.ok:
                state.stories = list(result.data or [])
            else:
                self._report("refresh", result.error)  # type: ignore[arg-type]
        self._notify()
        await self._reload_if_switched(user_id)

    async def _reload_if_switched(self, user_id: str | None) -> None:
        # set_user skips its refresh while a load is in flight
        current = self._state.user_id
        if current and current != user_id:
            await self.refresh_list()

    # =========================================================================
    # Loading
    # =========================================================================

    async def open(self, story_id: str) -> None:
        """Make a story (or the demo) the active document."""
        if story_id == self.demo.id:
            await self._open_demo()
            return

        state = self._state
        if not state.user_id or state.loading or state.saving:
            return

        user_id = state.user_id
        was_demo = state.demo_mode
        state.demo_mode = False
        with self._in_flight("loading"):
            result = await self.store.get(story_id, user_id)

        if state.user_id != user_id:
            self._log.debug(f"Discarding load of {story_id}: identity changed")
        elif result.ok and result.data is not None:
            state.current_story_id = story_id
            self.on_load(
                StoryDocument.from_story(result.data),
                LoadMeta(is_demo=False, story_id=story_id, title=result.data.title),
            )
        else:
            state.demo_mode = was_demo
            self._report("open", result.error)  # type: ignore[arg-type]
        self._notify()
        await self._reload_if_switched(user_id)

    async def _open_demo(self) -> None:
        state = self._state
        if state.loading or state.saving:
            return

        user_id = state.user_id
        document: StoryDocument | None = None
        error: DemoFetchError | None = None
        with self._in_flight("loading"):
            try:
                document = await self.demo_loader.fetch()
            except DemoFetchError as e:
                error = e

        if document is not None:
            state.demo_mode = True
            state.current_story_id = None
            self.on_load(document, LoadMeta(is_demo=True, title=self.demo.title))
        elif error is not None:
            self._report("open_demo", error)
        self._notify()
        await self._reload_if_switched(user_id)

    # =========================================================================
    # Writing
    # =========================================================================

    async def save(self) -> None:
        """Save the editor document: update the open story or create one."""
        await self._write("save", title=None, force_new=False)

    async def save_as(self, new_title: str | None = None) -> None:
        """Save the editor document as a new, independent story.

        Without new_title the prompt gate is asked; a blank or cancelled
        title does nothing.
        """
        state = self._state
        if not state.user_id or state.saving:
            return

        if new_title is None:
            document = StoryDocument.coerce(self.get_state())
            new_title = self.prompt(SAVE_AS_PROMPT, f"{document.title}{COPY_SUFFIX}")
        if not new_title or not new_title.strip():
            return

        await self._write("save_as", title=new_title.strip(), force_new=True)

    async def _write(self, action: str, title: str | None, force_new: bool) -> None:
        state = self._state
        if not state.user_id or state.saving:
            return

        document = StoryDocument.coerce(self.get_state())
        user_id = state.user_id
        started_id = state.current_story_id
        was_demo = state.demo_mode

        state.demo_mode = False
        with self._in_flight("saving"):
            result = await self.store.save(
                None if force_new else started_id,
                title or document.title,
                document.project,
                document.blocks,
                user_id,
            )

        if state.user_id != user_id:
            self._notify()
            return
        if not result.ok or result.data is None:
            state.demo_mode = was_demo
            self._report(action, result.error)  # type: ignore[arg-type]
            self._notify()
            return

        # Another intent may have moved the session while we were saving
        if state.current_story_id == started_id:
            state.current_story_id = result.data.id
        self._log.debug(f"Story {action} stored {result.data.id}")
        self._notify()
        await self.refresh_list()

    async def duplicate(self, story_id: str) -> None:
        """Copy a stored story; the open story does not change."""
        state = self._state
        if not state.user_id or state.saving:
            return

        user_id = state.user_id
        with self._in_flight("saving"):
            result = await self.store.duplicate(story_id, user_id)

        if state.user_id != user_id:
            self._notify()
            return
        if not result.ok:
            self._report("duplicate", result.error)  # type: ignore[arg-type]
            self._notify()
            return
        self._notify()
        await self.refresh_list()

    async def delete(self, story_id: str) -> None:
        """Delete a story after the confirm gate agrees.

        Holds ``saving`` while the delete is in flight.
        """
        state = self._state
        if not state.user_id or state.loading or state.saving:
            return
        if story_id == self.demo.id:
            return
        if not self.confirm(DELETE_CONFIRMATION):
            return

        user_id = state.user_id
        with self._in_flight("saving"):
            result = await self.store.delete(story_id, user_id)

        if state.user_id != user_id:
            self._notify()
            return
        if not result.ok:
            self._report("delete", result.error)  # type: ignore[arg-type]
            self._notify()
            return

        if state.current_story_id == story_id:
            state.current_story_id = None
            self.on_new()
        self._notify()
        await self.refresh_list()

    def start_new(self) -> None:
        """Reset the editor to a blank, unsaved document."""
        state = self._state
        if state.loading or state.saving:
            return

        state.demo_mode = False
        state.current_story_id = None
        self.on_new()
        self._notify()
