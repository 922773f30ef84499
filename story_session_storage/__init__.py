"""
Story Session Storage

Persistence and session state for a multi-block story editor.

Provides:
- Ownership-scoped story CRUD over pluggable document stores
  (in-memory, SQLite, Cosmos DB)
- A session state machine that sequences load/save/delete intents and
  publishes immutable snapshots to the presentation layer
- An always-available, read-only bundled demo story

Usage:

    >>> from story_session_storage import (
    ...     MemoryDocumentStore, StorySession, StoryStore,
    ... )
    >>> session = StorySession(
    ...     StoryStore(MemoryDocumentStore()),
    ...     on_load=editor.load,
    ...     on_new=editor.reset,
    ...     get_state=editor.document,
    ... )
    >>> session.subscribe(view.render)
    >>> await session.set_user("alice")
    >>> await session.save()

Backend Selection:

    # SQLite for embedded and single-host deployments
    from story_session_storage.backends.sqlite import SQLiteDocumentStore, SQLiteConfig

    # Cosmos DB for the hosted, multi-device store
    from story_session_storage.backends.cosmos import CosmosDocumentStore, CosmosConfig

    # Or from configuration
    from story_session_storage import StorySessionConfig, create_session
    session = create_session(StorySessionConfig.from_env(), on_load=editor.load)
"""

# Backend abstraction
from .backends import DocumentStore, MemoryDocumentStore, OrderBy

# Configuration
from .config import (
    StorySessionConfig,
    create_demo_loader,
    create_document_store,
    create_session,
)

# Demo story
from .demo import DemoDocumentLoader

# Exceptions
from .exceptions import (
    BackendUnavailableError,
    DemoFetchError,
    StorageConnectionError,
    StoryNotFoundError,
    StoryStorageError,
    StoryValidationError,
)

# Data types
from .protocol import (
    DEMO_STORY,
    DEMO_STORY_ID,
    DemoStory,
    FailureKind,
    LoadMeta,
    StoreResult,
    Story,
    StoryDocument,
    StoryListEntry,
)

# Session controller
from .session import SessionSnapshot, SessionState, StorySession
from .stories import StoryStore

# Conditional imports for optional backends
try:
    from .backends.sqlite import SQLiteConfig, SQLiteDocumentStore  # noqa: F401

    _has_sqlite = True
except ImportError:
    _has_sqlite = False

try:
    from .backends.cosmos import CosmosConfig, CosmosDocumentStore  # noqa: F401

    _has_cosmos = True
except ImportError:
    _has_cosmos = False


__all__ = [
    # Core abstractions
    "DocumentStore",
    "MemoryDocumentStore",
    "OrderBy",
    "StoryStore",
    "StorySession",
    "SessionState",
    "SessionSnapshot",
    "DemoDocumentLoader",
    # Configuration
    "StorySessionConfig",
    "create_document_store",
    "create_demo_loader",
    "create_session",
    # Data types
    "Story",
    "StoryListEntry",
    "StoryDocument",
    "DemoStory",
    "DEMO_STORY",
    "DEMO_STORY_ID",
    "LoadMeta",
    "StoreResult",
    "FailureKind",
    # Exceptions
    "StoryStorageError",
    "BackendUnavailableError",
    "StorageConnectionError",
    "StoryNotFoundError",
    "DemoFetchError",
    "StoryValidationError",
]

# Add optional exports
if _has_sqlite:
    __all__.extend(["SQLiteDocumentStore", "SQLiteConfig"])

if _has_cosmos:
    __all__.extend(["CosmosDocumentStore", "CosmosConfig"])

__version__ = "0.1.0"
