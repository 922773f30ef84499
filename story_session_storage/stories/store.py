"""
Ownership-scoped story CRUD.

StoryStore is stateless: every call takes the owning user, checks that
the backend is configured, performs at most one logical operation and
returns a StoreResult instead of raising for expected failures.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..backends.base import DocumentStore, OrderBy
from ..exceptions import (
    BackendUnavailableError,
    StorageConnectionError,
    StoryNotFoundError,
    StoryStorageError,
    StoryValidationError,
)
from ..protocol import (
    COPY_SUFFIX,
    DEFAULT_TITLE,
    LIST_COLUMNS,
    STORIES_TABLE,
    Story,
    StoreResult,
    StoryListEntry,
    utc_now,
)

logger = logging.getLogger(__name__)

_MOST_RECENT_FIRST = OrderBy("updated_at", descending=True)

T = TypeVar("T")


class StoryStore:
    """CRUD operations on stories, each scoped to an owning user.

    Example:
        >>> store = StoryStore(MemoryDocumentStore())
        >>> result = await store.create("Trip", "p1", [], user_id="alice")
        >>> result.ok, result.data.id is not None
        (True, True)
    """

    def __init__(
        self,
        backend: DocumentStore,
        clock: Callable[[], str] = utc_now,
        table: str = STORIES_TABLE,
    ):
        """
        Args:
            backend: Document store holding story records
            clock: Returns the current time as an ISO 8601 string
            table: Table name for story records
        """
        self.backend = backend
        self.clock = clock
        self.table = table

    def _precheck(self, user_id: str | None) -> StoryStorageError | None:
        # Configuration can change between calls; check every time.
        if not self.backend.is_configured():
            return BackendUnavailableError(self.backend.name, "store not configured")
        if not user_id:
            return StoryValidationError("user_id", "a signed-in user is required")
        return None

    def _fail(self, operation: str, error: StoryStorageError, **context: Any) -> StoreResult:
        logger.warning(
            f"Story {operation} failed: {error.message}",
            extra={"operation": operation, **context},
        )
        return StoreResult.failure(error)

    async def _call(self, operation: Awaitable[T]) -> T:
        """Await a backend operation, wrapping transport errors.

        Backends may leak driver exceptions (OSError, aiosqlite or
        azure-core errors); those become StorageConnectionError so every
        operation ends in a StoreResult.
        """
        try:
            return await operation
        except StoryStorageError:
            raise
        except Exception as e:
            raise StorageConnectionError(self.backend.name, e) from e

    @staticmethod
    def _fields(title: str | None, project: str | None, blocks: list | None) -> dict[str, Any]:
        return {
            "title": title or DEFAULT_TITLE,
            "project": project or "",
            "blocks": list(blocks or []),
        }

    async def create(
        self,
        title: str | None,
        project: str | None,
        blocks: list[dict[str, Any]] | None,
        user_id: str,
    ) -> StoreResult[Story]:
        """Insert a new story owned by user_id."""
        error = self._precheck(user_id)
        if error:
            return self._fail("create", error, user_id=user_id)

        now = self.clock()
        record = {
            **self._fields(title, project, blocks),
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            stored = await self._call(self.backend.insert(self.table, record))
        except StoryStorageError as e:
            return self._fail("create", e, user_id=user_id)

        logger.debug("Story created", extra={"user_id": user_id, "story_id": stored["id"]})
        return StoreResult.success(Story.from_dict(stored))

    async def update(
        self,
        story_id: str,
        title: str | None,
        project: str | None,
        blocks: list[dict[str, Any]] | None,
        user_id: str,
    ) -> StoreResult[Story]:
        """Overwrite title, project and blocks of a story the user owns."""
        error = self._precheck(user_id)
        if error:
            return self._fail("update", error, user_id=user_id, story_id=story_id)

        changes = {**self._fields(title, project, blocks), "updated_at": self.clock()}
        try:
            updated = await self._call(self.backend.update_where(
                self.table, changes, {"id": story_id, "user_id": user_id}
            ))
        except StoryStorageError as e:
            return self._fail("update", e, user_id=user_id, story_id=story_id)

        if not updated:
            return self._fail(
                "update", StoryNotFoundError(story_id, user_id), user_id=user_id, story_id=story_id
            )
        return StoreResult.success(Story.from_dict(updated[0]))

    async def save(
        self,
        story_id: str | None,
        title: str | None,
        project: str | None,
        blocks: list[dict[str, Any]] | None,
        user_id: str,
    ) -> StoreResult[Story]:
        """Update when story_id is set, otherwise create."""
        if story_id:
            return await self.update(story_id, title, project, blocks, user_id)
        return await self.create(title, project, blocks, user_id)

    async def get(self, story_id: str, user_id: str) -> StoreResult[Story]:
        """Fetch one story; absent and not-owned both fail as not found."""
        error = self._precheck(user_id)
        if error:
            return self._fail("get", error, user_id=user_id, story_id=story_id)

        try:
            rows = await self._call(self.backend.select_where(
                self.table, {"id": story_id, "user_id": user_id}
            ))
        except StoryStorageError as e:
            return self._fail("get", e, user_id=user_id, story_id=story_id)

        if not rows:
            return self._fail(
                "get", StoryNotFoundError(story_id, user_id), user_id=user_id, story_id=story_id
            )
        return StoreResult.success(Story.from_dict(rows[0]))

    async def list(self, user_id: str) -> StoreResult[list[StoryListEntry]]:
        """List the user's stories, most recently updated first."""
        error = self._precheck(user_id)
        if error:
            return self._fail("list", error, user_id=user_id)

        try:
            rows = await self._call(self.backend.select_where(
                self.table,
                {"user_id": user_id},
                columns=LIST_COLUMNS,
                order_by=_MOST_RECENT_FIRST,
            ))
        except StoryStorageError as e:
            return self._fail("list", e, user_id=user_id)

        return StoreResult.success([StoryListEntry.from_dict(row) for row in rows])

    async def delete(self, story_id: str, user_id: str) -> StoreResult[None]:
        """Delete a story the user owns.

        Deleting an absent or foreign story succeeds without effect.
        """
        error = self._precheck(user_id)
        if error:
            return self._fail("delete", error, user_id=user_id, story_id=story_id)

        try:
            deleted = await self._call(self.backend.delete_where(
                self.table, {"id": story_id, "user_id": user_id}
            ))
        except StoryStorageError as e:
            return self._fail("delete", e, user_id=user_id, story_id=story_id)

        logger.debug(
            f"Deleted {deleted} story record(s)",
            extra={"user_id": user_id, "story_id": story_id},
        )
        return StoreResult.success(None)

    async def duplicate(self, story_id: str, user_id: str) -> StoreResult[Story]:
        """Copy a story into a new record titled '<title> (copy)'."""
        original = await self.get(story_id, user_id)
        if not original.ok:
            return original

        source = original.data
        if source is None:
            return self._fail("duplicate", StoryNotFoundError(story_id, user_id), user_id=user_id)
        return await self.create(
            f"{source.title}{COPY_SUFFIX}",
            source.project,
            source.blocks,
            user_id,
        )
