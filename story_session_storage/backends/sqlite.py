"""
SQLite document store.

Stores each record as a JSON body keyed by id, one SQLite table per
document table. Ideal for single-host deployments, embedded editors and
testing.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import BackendUnavailableError, StorageConnectionError
from .base import DocumentStore, OrderBy, check_field_names

logger = logging.getLogger(__name__)


@dataclass
class SQLiteConfig:
    """Configuration for SQLite storage."""

    db_path: str | Path = ":memory:"

    @classmethod
    def from_env(cls) -> SQLiteConfig:
        """Create config from environment variables."""
        return cls(db_path=os.environ.get("STORY_SQLITE_PATH", ":memory:"))


def _json_path(field: str) -> str:
    return f"json_extract(body, '$.{field}')"


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-backed document store.

    Table schema (created on first use):
        id   TEXT PRIMARY KEY
        body TEXT NOT NULL   -- the full record as JSON

    Filters other than ``id`` and ordering use ``json_extract`` on the body.
    """

    name = "sqlite"

    def __init__(self, config: SQLiteConfig | None = None):
        self.config = config or SQLiteConfig()
        self.conn: aiosqlite.Connection | None = None
        self._tables: set[str] = set()
        self._write_lock = asyncio.Lock()
        self._initialized = False

    @classmethod
    async def create(cls, config: SQLiteConfig | None = None) -> SQLiteDocumentStore:
        """Create and initialize a SQLite store."""
        if config is None:
            config = SQLiteConfig.from_env()

        store = cls(config)
        await store.initialize()
        return store

    def is_configured(self) -> bool:
        return bool(str(self.config.db_path))

    async def initialize(self) -> None:
        """Open the SQLite connection."""
        if self._initialized:
            return
        if not self.is_configured():
            raise BackendUnavailableError(self.name, "db_path not set")

        try:
            self.conn = await aiosqlite.connect(str(self.config.db_path))
            self.conn.row_factory = aiosqlite.Row
        except Exception as e:
            raise StorageConnectionError(str(self.config.db_path), e) from e

        self._initialized = True
        logger.info(f"SQLite document store initialized: {self.config.db_path}")

    async def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None

        self._tables.clear()
        self._initialized = False

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        """Translate driver errors into StorageConnectionError."""
        try:
            yield
        except (aiosqlite.Error, OSError) as e:
            raise StorageConnectionError(str(self.config.db_path), e) from e

    async def _ensure_table(self, table: str) -> aiosqlite.Connection:
        await self.initialize()
        assert self.conn is not None

        if table not in self._tables:
            check_field_names(table)
            await self.conn.execute(
                f"CREATE TABLE IF NOT EXISTS {table} "
                "(id TEXT NOT NULL PRIMARY KEY, body TEXT NOT NULL)"
            )
            await self.conn.commit()
            self._tables.add(table)
        return self.conn

    @staticmethod
    def _where(filters: dict[str, Any]) -> tuple[str, list[Any]]:
        check_field_names(*filters)
        where_parts = ["1=1"]
        params: list[Any] = []
        for key, value in filters.items():
            where_parts.append("id = ?" if key == "id" else f"{_json_path(key)} = ?")
            params.append(value)
        return " AND ".join(where_parts), params

    async def _fetch(
        self,
        conn: aiosqlite.Connection,
        table: str,
        filters: dict[str, Any],
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        where_clause, params = self._where(filters)
        query = f"SELECT body FROM {table} WHERE {where_clause}"
        if order_by is not None:
            check_field_names(order_by.field)
            direction = "DESC" if order_by.descending else "ASC"
            query += f" ORDER BY {_json_path(order_by.field)} {direction}"

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [json.loads(row["body"]) for row in rows]

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        stored = dict(record)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())

        with self._storage_errors():
            conn = await self._ensure_table(table)
            async with self._write_lock:
                await conn.execute(
                    f"INSERT INTO {table} (id, body) VALUES (?, ?)",
                    (stored["id"], json.dumps(stored)),
                )
                await conn.commit()
        return stored

    async def update_where(
        self,
        table: str,
        changes: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        check_field_names(*changes)

        with self._storage_errors():
            conn = await self._ensure_table(table)
            async with self._write_lock:
                try:
                    updated = []
                    for record in await self._fetch(conn, table, filters):
                        record.update(changes)
                        await conn.execute(
                            f"UPDATE {table} SET body = ? WHERE id = ?",
                            (json.dumps(record), record["id"]),
                        )
                        updated.append(record)
                    await conn.commit()
                except Exception:
                    await conn.rollback()
                    raise
        return updated

    async def select_where(
        self,
        table: str,
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        with self._storage_errors():
            conn = await self._ensure_table(table)
            records = await self._fetch(conn, table, filters, order_by)
        if columns:
            check_field_names(*columns)
            return [{c: r.get(c) for c in columns} for r in records]
        return records

    async def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        where_clause, params = self._where(filters)

        with self._storage_errors():
            conn = await self._ensure_table(table)
            async with self._write_lock:
                cursor = await conn.execute(f"DELETE FROM {table} WHERE {where_clause}", params)
                await conn.commit()
        return cursor.rowcount
