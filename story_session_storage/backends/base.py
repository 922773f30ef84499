"""
Abstract base class for document store backends.

All storage implementations (memory, SQLite, Cosmos) must implement this interface.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..exceptions import StoryValidationError

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class OrderBy:
    """Ordering applied to select_where results."""

    field: str
    descending: bool = False


def check_field_names(*names: str) -> None:
    """Reject field names that cannot be safely embedded in a query."""
    for name in names:
        if not _FIELD_NAME.match(name):
            raise StoryValidationError("field", "invalid field name", name)


class DocumentStore(ABC):
    """
    Generic request/response document store scoped by table name.

    Records are JSON-compatible dicts. Filters are equality matches on
    top-level fields and are combined with AND. Implementations raise
    BackendUnavailableError (or StorageConnectionError) when they cannot
    reach their backing service.
    """

    name: str = "document-store"

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the store has the configuration it needs to serve requests.

        Checked before every operation; configuration can change during the
        life of the process.
        """
        ...

    @abstractmethod
    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a record, assigning an ``id`` if it has none.

        Returns:
            The stored record including its id
        """
        ...

    @abstractmethod
    async def update_where(
        self,
        table: str,
        changes: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Apply changes to every record matching filters.

        Returns:
            The updated records (empty if nothing matched)
        """
        ...

    @abstractmethod
    async def select_where(
        self,
        table: str,
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        """Select records matching filters.

        Args:
            table: Table name
            filters: Equality filters
            columns: Optional projection (all fields when None)
            order_by: Optional ordering

        Returns:
            Matching records
        """
        ...

    @abstractmethod
    async def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        """Delete every record matching filters.

        Returns:
            Number of records deleted
        """
        ...

    async def close(self) -> None:
        """Close connections and cleanup resources."""
        return None

    async def __aenter__(self) -> DocumentStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
