"""Tests for ownership-scoped story CRUD."""

from unittest.mock import AsyncMock

import pytest

from story_session_storage import MemoryDocumentStore, StoryStore
from story_session_storage.backends.sqlite import SQLiteConfig, SQLiteDocumentStore
from story_session_storage.exceptions import StorageConnectionError, StoryNotFoundError
from story_session_storage.protocol import DEFAULT_TITLE, FailureKind, StoreResult


GALLERY = [{"type": "gallery", "media": []}]


class TestCreateAndGet:
    """Tests for create/get round trips."""

    async def test_round_trip(self, store: StoryStore):
        """A created story reads back unchanged for its owner."""
        created = await store.create("Trip", "p1", GALLERY, user_id="alice")
        assert created.ok
        story_id = created.data.id

        fetched = await store.get(story_id, "alice")

        assert fetched.ok
        story = fetched.data
        assert (story.title, story.project, story.blocks, story.user_id) == (
            "Trip",
            "p1",
            GALLERY,
            "alice",
        )
        assert story.created_at <= story.updated_at

    async def test_create_sets_both_timestamps(self, store: StoryStore):
        created = await store.create("Trip", "p1", [], user_id="alice")
        assert created.data.created_at == created.data.updated_at

    async def test_create_applies_defaults(self, store: StoryStore):
        created = await store.create("", None, None, user_id="alice")

        assert created.data.title == DEFAULT_TITLE
        assert created.data.project == ""
        assert created.data.blocks == []

    async def test_get_foreign_story_is_not_found(self, store: StoryStore):
        """Another user's story is indistinguishable from a missing one."""
        created = await store.create("Secret", "", [], user_id="alice")

        foreign = await store.get(created.data.id, "bob")
        missing = await store.get("no-such-id", "bob")

        assert foreign.kind is FailureKind.NOT_FOUND
        assert foreign.data is None
        assert isinstance(foreign.error, StoryNotFoundError)
        assert type(foreign.error) is type(missing.error)

    async def test_blank_user_is_rejected(self, store: StoryStore):
        result = await store.create("Trip", "", [], user_id="")
        assert result.kind is FailureKind.VALIDATION


class TestUpdate:
    """Tests for update."""

    async def test_update_refreshes_updated_at_only(self, store: StoryStore):
        created = (await store.create("Trip", "p1", [], user_id="alice")).data

        updated = await store.update(created.id, "Trip 2", "p2", GALLERY, user_id="alice")

        assert updated.ok
        assert updated.data.id == created.id
        assert updated.data.title == "Trip 2"
        assert updated.data.blocks == GALLERY
        assert updated.data.created_at == created.created_at
        assert updated.data.updated_at > created.updated_at

    async def test_update_foreign_story_is_not_found(self, store: StoryStore):
        created = (await store.create("Trip", "p1", [], user_id="alice")).data

        result = await store.update(created.id, "Hijacked", "", [], user_id="bob")

        assert result.kind is FailureKind.NOT_FOUND
        still = (await store.get(created.id, "alice")).data
        assert still.title == "Trip"
        assert still.user_id == "alice"

    async def test_save_dispatches_on_id(self, store: StoryStore):
        first = (await store.save(None, "Trip", "", [], user_id="alice")).data
        second = (await store.save(first.id, "Trip v2", "", [], user_id="alice")).data

        assert second.id == first.id
        assert len((await store.list("alice")).data) == 1


class TestList:
    """Tests for list."""

    async def test_empty_list_is_success(self, store: StoryStore):
        result = await store.list("alice")
        assert result.ok
        assert result.data == []

    async def test_most_recently_updated_first(self, store: StoryStore):
        first = (await store.create("First", "", [], user_id="alice")).data
        await store.create("Second", "", [], user_id="alice")
        await store.create("Other", "", [], user_id="bob")
        await store.update(first.id, "First", "", [], user_id="alice")

        entries = (await store.list("alice")).data

        assert [e.title for e in entries] == ["First", "Second"]


class TestDeleteAndDuplicate:
    """Tests for delete and duplicate."""

    async def test_delete_own_story(self, store: StoryStore):
        created = (await store.create("Trip", "", [], user_id="alice")).data

        assert (await store.delete(created.id, "alice")).ok
        assert (await store.get(created.id, "alice")).kind is FailureKind.NOT_FOUND

    async def test_delete_foreign_story_has_no_effect(self, store: StoryStore):
        created = (await store.create("Trip", "", [], user_id="alice")).data

        result = await store.delete(created.id, "bob")

        assert result.ok
        assert (await store.get(created.id, "alice")).ok

    async def test_duplicate_copies_content(self, store: StoryStore):
        created = (await store.create("Trip", "p1", GALLERY, user_id="alice")).data

        copy = await store.duplicate(created.id, "alice")

        assert copy.ok
        assert copy.data.id != created.id
        assert copy.data.title == "Trip (copy)"
        assert copy.data.project == "p1"
        assert copy.data.blocks == GALLERY

    async def test_duplicate_propagates_get_failure(self, store: StoryStore):
        created = (await store.create("Trip", "", [], user_id="alice")).data

        result = await store.duplicate(created.id, "bob")

        assert result.kind is FailureKind.NOT_FOUND
        assert len((await store.list("bob")).data) == 0

    async def test_duplicate_of_empty_lookup_is_not_found(self, store: StoryStore):
        store.get = AsyncMock(return_value=StoreResult.success(None))

        result = await store.duplicate("s1", "alice")

        assert result.kind is FailureKind.NOT_FOUND
        assert (await store.list("alice")).data == []


class TestBackendUnavailable:
    """Every operation checks configuration on every call."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.create("Trip", "", [], "alice"),
            lambda s: s.update("s1", "Trip", "", [], "alice"),
            lambda s: s.get("s1", "alice"),
            lambda s: s.list("alice"),
            lambda s: s.delete("s1", "alice"),
            lambda s: s.duplicate("s1", "alice"),
        ],
    )
    async def test_unconfigured_backend(self, call):
        store = StoryStore(MemoryDocumentStore(configured=False))
        result = await call(store)
        assert result.kind is FailureKind.BACKEND_UNAVAILABLE

    async def test_configuration_checked_per_call(self, clock):
        backend = MemoryDocumentStore()
        store = StoryStore(backend, clock=clock)
        assert (await store.list("alice")).ok

        backend.configured = False
        assert (await store.list("alice")).kind is FailureKind.BACKEND_UNAVAILABLE

        backend.configured = True
        assert (await store.list("alice")).ok

    async def test_backend_errors_become_results(self):
        backend = MemoryDocumentStore()
        backend.insert = AsyncMock(side_effect=StorageConnectionError("https://db"))
        store = StoryStore(backend)

        result = await store.create("Trip", "", [], "alice")

        assert not result.ok
        assert result.kind is FailureKind.BACKEND_UNAVAILABLE

    @pytest.mark.parametrize(
        "error",
        [ConnectionResetError("peer reset"), OSError("disk I/O error"), RuntimeError("driver")],
    )
    async def test_unexpected_backend_errors_become_results(self, error):
        backend = MemoryDocumentStore()
        backend.select_where = AsyncMock(side_effect=error)
        store = StoryStore(backend)

        result = await store.list("alice")

        assert result.kind is FailureKind.BACKEND_UNAVAILABLE
        assert isinstance(result.error, StorageConnectionError)
        assert result.error.cause is error

    async def test_unreadable_sqlite_file_becomes_result(self, tmp_path):
        db_path = tmp_path / "stories.db"
        db_path.write_bytes(b"not a sqlite database" * 64)
        store = StoryStore(SQLiteDocumentStore(SQLiteConfig(db_path=db_path)))

        result = await store.create("Trip", "", [], "alice")

        assert result.kind is FailureKind.BACKEND_UNAVAILABLE
        await store.backend.close()
