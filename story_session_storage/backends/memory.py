"""
In-memory document store.

Keeps records in process memory. Used for tests, demos and local
development where no persistence across restarts is needed.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from ..exceptions import BackendUnavailableError
from .base import DocumentStore, OrderBy, check_field_names

logger = logging.getLogger(__name__)


class MemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Records are deep-copied on the way in and out, so callers never share
    mutable state with the store.
    """

    name = "memory"

    def __init__(self, configured: bool = True):
        self.configured = configured
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}

    def is_configured(self) -> bool:
        return self.configured

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        if not self.configured:
            raise BackendUnavailableError(self.name, "store not configured")
        return self._tables.setdefault(table, {})

    @staticmethod
    def _matches(record: dict[str, Any], filters: dict[str, Any]) -> bool:
        return all(record.get(key) == value for key, value in filters.items())

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        rows = self._table(table)
        stored = copy.deepcopy(record)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())
        rows[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update_where(
        self,
        table: str,
        changes: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        check_field_names(*changes, *filters)
        updated: list[dict[str, Any]] = []
        for record in self._table(table).values():
            if self._matches(record, filters):
                record.update(copy.deepcopy(changes))
                updated.append(copy.deepcopy(record))
        return updated

    async def select_where(
        self,
        table: str,
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        check_field_names(*filters, *(columns or ()))
        rows = [r for r in self._table(table).values() if self._matches(r, filters)]

        if order_by is not None:
            check_field_names(order_by.field)
            rows.sort(key=lambda r: r.get(order_by.field) or "", reverse=order_by.descending)

        if columns:
            return [{c: copy.deepcopy(r.get(c)) for c in columns} for r in rows]
        return [copy.deepcopy(r) for r in rows]

    async def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        check_field_names(*filters)
        rows = self._table(table)
        doomed = [key for key, record in rows.items() if self._matches(record, filters)]
        for key in doomed:
            del rows[key]
        logger.debug(f"Deleted {len(doomed)} record(s) from {table}")
        return len(doomed)
