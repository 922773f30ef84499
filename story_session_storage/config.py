"""
Configuration for story storage.

Settings come from keyword arguments, environment variables or the
``stories`` section of a YAML settings file:

```yaml
stories:
  backend: sqlite            # memory | sqlite | cosmos
  sqlite_path: ~/.story-editor/stories.db
  cosmos_endpoint: https://example.documents.azure.com:443/
  cosmos_database: story-db
  cosmos_auth_method: default_credential   # or "key" with cosmos_key
  demo_root: https://example.org
  demo_base_path: /editor
  demo_project: __demo__
```
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .backends.base import DocumentStore
from .backends.memory import MemoryDocumentStore
from .demo.loader import DemoDocumentLoader
from .exceptions import StoryValidationError
from .protocol import DEMO_STORY, DemoStory
from .session.controller import StorySession
from .stories.store import StoryStore

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "sqlite", "cosmos")
DEFAULT_SETTINGS_PATH = Path.home() / ".story-editor" / "settings.yaml"

_ENV_VARS = {
    "backend": "STORY_STORAGE_BACKEND",
    "sqlite_path": "STORY_SQLITE_PATH",
    "cosmos_endpoint": "STORY_COSMOS_ENDPOINT",
    "cosmos_key": "STORY_COSMOS_KEY",
    "cosmos_database": "STORY_COSMOS_DATABASE",
    "cosmos_auth_method": "STORY_COSMOS_AUTH_METHOD",
    "demo_root": "STORY_DEMO_ROOT",
    "demo_base_path": "STORY_DEMO_BASE_PATH",
    "demo_project": "STORY_DEMO_PROJECT",
}


@dataclass
class StorySessionConfig:
    """Configuration for story storage and the demo story.

    Attributes:
        backend: Document store to use (memory, sqlite or cosmos)
        sqlite_path: SQLite database path
        cosmos_endpoint: Cosmos DB endpoint URL
        cosmos_key: Cosmos DB key (only for key auth)
        cosmos_database: Cosmos DB database name
        cosmos_auth_method: "key" or "default_credential"
        demo_root: Directory or URL the demo story is served from
        demo_base_path: Sub-path prefix for sub-path deployments
        demo_project: Demo project directory under projects/
    """

    backend: str = "memory"
    sqlite_path: str = ":memory:"
    cosmos_endpoint: str | None = None
    cosmos_key: str | None = None
    cosmos_database: str = "story-db"
    cosmos_auth_method: str = "default_credential"
    demo_root: str = "."
    demo_base_path: str = ""
    demo_project: str = DEMO_STORY.project_dir

    def __post_init__(self) -> None:
        self.backend = self.backend.lower()
        if self.backend not in BACKENDS:
            raise StoryValidationError(
                "backend", f"must be one of {', '.join(BACKENDS)}", self.backend
            )

    @classmethod
    def from_env(cls) -> StorySessionConfig:
        """Create configuration from STORY_* environment variables."""
        values = {
            name: os.environ[var] for name, var in _ENV_VARS.items() if os.environ.get(var)
        }
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path | None = None) -> StorySessionConfig:
        """Create configuration from the ``stories`` section of a YAML file.

        A missing file or section yields the defaults.
        """
        path = path or DEFAULT_SETTINGS_PATH
        if not path.exists():
            return cls()

        try:
            content = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise StoryValidationError("settings", f"invalid YAML in {path}: {e}") from e

        section: dict[str, Any] = content.get("stories") or {}
        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning(f"Ignoring unknown story settings: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in section.items() if k in known})


def create_document_store(config: StorySessionConfig) -> DocumentStore:
    """Build the configured backend.

    SQLite and Cosmos connect lazily on first use.
    """
    if config.backend == "sqlite":
        from .backends.sqlite import SQLiteConfig, SQLiteDocumentStore

        return SQLiteDocumentStore(SQLiteConfig(db_path=os.path.expanduser(config.sqlite_path)))

    if config.backend == "cosmos":
        from .backends.cosmos import CosmosConfig, CosmosDocumentStore

        return CosmosDocumentStore(
            CosmosConfig(
                endpoint=config.cosmos_endpoint,
                database_name=config.cosmos_database,
                auth_method=config.cosmos_auth_method,
                key=config.cosmos_key,
            )
        )

    return MemoryDocumentStore()


def create_demo_loader(config: StorySessionConfig) -> DemoDocumentLoader:
    return DemoDocumentLoader(
        root=config.demo_root,
        base_path=config.demo_base_path,
        project_dir=config.demo_project,
    )


def create_session(
    config: StorySessionConfig | None = None,
    **callbacks: Callable[..., Any],
) -> StorySession:
    """Wire backend, StoryStore, demo loader and StorySession together.

    Args:
        config: Configuration (from environment when None)
        **callbacks: StorySession callbacks (on_load, on_new, get_state,
            confirm, prompt, on_error)

    Returns:
        A StorySession with no user set
    """
    config = config or StorySessionConfig.from_env()
    store = StoryStore(create_document_store(config))
    return StorySession(
        store,
        demo_loader=create_demo_loader(config),
        demo=DemoStory(project_dir=config.demo_project),
        **callbacks,
    )
