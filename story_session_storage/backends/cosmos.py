"""
Cosmos DB document store.

Maps each document table onto a Cosmos DB container partitioned by the
owning user, so every ownership-scoped query stays within one partition.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.core.exceptions import AzureError
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential

from ..exceptions import BackendUnavailableError, StorageConnectionError
from .base import DocumentStore, OrderBy, check_field_names

logger = logging.getLogger(__name__)

# Auth methods
AUTH_KEY = "key"
AUTH_DEFAULT_CREDENTIAL = "default_credential"

# Every record is partitioned by its owner
PARTITION_FIELD = "user_id"


@dataclass
class CosmosConfig:
    """Configuration for Cosmos DB storage."""

    endpoint: str | None = None
    database_name: str = "story-db"
    auth_method: str = AUTH_DEFAULT_CREDENTIAL
    key: str | None = None

    @classmethod
    def from_env(cls) -> CosmosConfig:
        """Create config from environment variables.

        Unlike the other settings, a missing endpoint is not an error here:
        the store then reports itself as not configured.
        """
        return cls(
            endpoint=os.environ.get("STORY_COSMOS_ENDPOINT"),
            database_name=os.environ.get("STORY_COSMOS_DATABASE", "story-db"),
            auth_method=os.environ.get("STORY_COSMOS_AUTH_METHOD", AUTH_DEFAULT_CREDENTIAL),
            key=os.environ.get("STORY_COSMOS_KEY"),
        )


def _strip_system_fields(item: dict[str, Any]) -> dict[str, Any]:
    """Drop Cosmos bookkeeping fields (_rid, _etag, _ts, ...)."""
    return {k: v for k, v in item.items() if not k.startswith("_")}


class CosmosDocumentStore(DocumentStore):
    """
    Cosmos DB document store.

    Container schema (one container per table):
    {
        "id": "{story_id}",
        "user_id": "{user_id}",      // partition key
        ...record fields
    }
    """

    name = "cosmos"

    def __init__(self, config: CosmosConfig):
        self.config = config
        self._client: CosmosClient | None = None
        self._credential: DefaultAzureCredential | None = None
        self._database: DatabaseProxy | None = None
        self._containers: dict[str, ContainerProxy] = {}
        self._initialized = False

    @classmethod
    async def create(cls, config: CosmosConfig | None = None) -> CosmosDocumentStore:
        """Create and initialize a Cosmos store."""
        if config is None:
            config = CosmosConfig.from_env()

        store = cls(config)
        await store.initialize()
        return store

    def is_configured(self) -> bool:
        if not self.config.endpoint:
            return False
        if self.config.auth_method == AUTH_KEY:
            return bool(self.config.key)
        return True

    async def initialize(self) -> None:
        """Initialize Cosmos client and database."""
        if self._initialized:
            return
        if not self.is_configured():
            raise BackendUnavailableError(self.name, "endpoint or credentials not set")

        endpoint = str(self.config.endpoint)
        try:
            if self.config.auth_method == AUTH_KEY:
                self._client = CosmosClient(endpoint, credential=self.config.key)
            else:
                self._credential = DefaultAzureCredential()
                self._client = CosmosClient(endpoint, credential=self._credential)

            self._database = await self._client.create_database_if_not_exists(
                id=self.config.database_name
            )
        except Exception as e:
            await self.close()
            raise StorageConnectionError(endpoint, e) from e

        self._initialized = True
        logger.info(f"Cosmos document store initialized: {endpoint}")

    async def close(self) -> None:
        """Close the Cosmos client and credential."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None

        self._database = None
        self._containers.clear()
        self._initialized = False

    async def _container(self, table: str) -> ContainerProxy:
        await self.initialize()
        assert self._database is not None

        if table not in self._containers:
            check_field_names(table)
            try:
                self._containers[table] = await self._database.create_container_if_not_exists(
                    id=table,
                    partition_key=PartitionKey(path=f"/{PARTITION_FIELD}"),
                )
            except AzureError as e:
                raise StorageConnectionError(str(self.config.endpoint), e) from e
        return self._containers[table]

    @staticmethod
    def _build_query(
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> tuple[str, list[dict[str, object]]]:
        check_field_names(*filters, *(columns or ()))
        projection = ", ".join(f"c.{c}" for c in columns) if columns else "*"
        query_parts = [f"SELECT {projection} FROM c WHERE 1=1"]
        params: list[dict[str, object]] = []

        for key, value in filters.items():
            query_parts.append(f"AND c.{key} = @{key}")
            params.append({"name": f"@{key}", "value": value})

        if order_by is not None:
            check_field_names(order_by.field)
            direction = "DESC" if order_by.descending else "ASC"
            query_parts.append(f"ORDER BY c.{order_by.field} {direction}")

        return " ".join(query_parts), params

    async def _query(
        self,
        container: ContainerProxy,
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        query, params = self._build_query(filters, columns, order_by)
        kwargs: dict[str, Any] = {}
        if PARTITION_FIELD in filters:
            kwargs["partition_key"] = filters[PARTITION_FIELD]

        results: list[dict[str, Any]] = []
        try:
            async for item in container.query_items(query=query, parameters=params, **kwargs):
                results.append(_strip_system_fields(item))
        except AzureError as e:
            raise StorageConnectionError(str(self.config.endpoint), e) from e
        return results

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        container = await self._container(table)
        body = dict(record)
        if not body.get("id"):
            body["id"] = str(uuid.uuid4())

        try:
            created = await container.create_item(body=body)
        except AzureError as e:
            raise StorageConnectionError(str(self.config.endpoint), e) from e
        return _strip_system_fields(created)

    async def update_where(
        self,
        table: str,
        changes: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        check_field_names(*changes)
        container = await self._container(table)

        updated: list[dict[str, Any]] = []
        for record in await self._query(container, filters):
            record.update(changes)
            try:
                replaced = await container.replace_item(item=record["id"], body=record)
            except CosmosResourceNotFoundError:
                continue
            except AzureError as e:
                raise StorageConnectionError(str(self.config.endpoint), e) from e
            updated.append(_strip_system_fields(replaced))
        return updated

    async def select_where(
        self,
        table: str,
        filters: dict[str, Any],
        columns: tuple[str, ...] | None = None,
        order_by: OrderBy | None = None,
    ) -> list[dict[str, Any]]:
        container = await self._container(table)
        return await self._query(container, filters, columns, order_by)

    async def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        container = await self._container(table)

        deleted_count = 0
        for record in await self._query(container, filters, columns=("id", PARTITION_FIELD)):
            try:
                await container.delete_item(
                    item=record["id"], partition_key=record[PARTITION_FIELD]
                )
                deleted_count += 1
            except CosmosResourceNotFoundError:
                pass
            except AzureError as e:
                raise StorageConnectionError(str(self.config.endpoint), e) from e
        return deleted_count
