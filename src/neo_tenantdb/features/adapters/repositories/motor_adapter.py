"""MongoDB adapter over Motor.

Handles are :class:`AsyncIOMotorDatabase` objects; the client that owns them
is closed on disconnect. MongoDB has databases but no schemas, so the schema
strategy is rejected for this adapter at startup.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.uri_parser import parse_uri

from ....config.constants import AdapterKind, NamespaceKind, ReservedNamespaces
from ..entities import ConnectionDescriptor, FilterTree, OrderBy
from ..utils.filters import compile_mongo_filter, parse_order_by
from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)

# MongoDB only materializes a database once it holds a collection
_PLACEHOLDER_COLLECTION = "_tenantdb_init"


class MotorAdapter(BaseAdapter):
    """MongoDB through Motor clients, one client per tenant handle."""

    kind = AdapterKind.MOTOR
    system_database = "admin"
    reserved_databases = ReservedNamespaces.MONGO_DATABASES

    async def connect(self, descriptor: ConnectionDescriptor) -> AsyncIOMotorDatabase:
        database = descriptor.database or parse_uri(descriptor.url).get("database")
        if not database:
            raise ValueError("MongoDB URL must name a database")

        client = AsyncIOMotorClient(
            descriptor.url,
            minPoolSize=self.pool_min_size,
            maxPoolSize=self.pool_max_size,
            serverSelectionTimeoutMS=int(self.connect_timeout * 1000),
            **{**self.driver_options, **descriptor.options},
        )
        try:
            await client.admin.command("ping")
        except Exception:
            client.close()
            raise
        logger.info(f"Connected Motor client {descriptor!r}")
        return client[database]

    async def disconnect(self, handle: AsyncIOMotorDatabase) -> None:
        handle.client.close()

    async def execute(self, handle: AsyncIOMotorDatabase, command: Any, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a database command, e.g. ``execute(db, "dbStats")``."""
        return await handle.command(command, **dict(params or {}))

    async def insert(self, handle: AsyncIOMotorDatabase, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        result = await handle[collection].insert_many([dict(record) for record in records])
        return len(result.inserted_ids)

    async def find(
        self,
        handle: AsyncIOMotorDatabase,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[dict]:
        cursor = handle[collection].find(compile_mongo_filter(where))
        sort = [(field, DESCENDING if descending else ASCENDING) for field, descending in parse_order_by(order_by)]
        if sort:
            cursor = cursor.sort(sort)
        if limit is not None:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)

    async def update(
        self,
        handle: AsyncIOMotorDatabase,
        collection: str,
        where: Optional[FilterTree],
        values: Mapping[str, Any],
    ) -> int:
        result = await handle[collection].update_many(compile_mongo_filter(where), {"$set": dict(values)})
        return result.matched_count

    async def delete(self, handle: AsyncIOMotorDatabase, collection: str, where: Optional[FilterTree] = None) -> int:
        result = await handle[collection].delete_many(compile_mongo_filter(where))
        return result.deleted_count

    async def count(self, handle: AsyncIOMotorDatabase, collection: str, where: Optional[FilterTree] = None) -> int:
        return await handle[collection].count_documents(compile_mongo_filter(where))

    async def distinct(
        self,
        handle: AsyncIOMotorDatabase,
        collection: str,
        field: str,
        where: Optional[FilterTree] = None,
    ) -> List[Any]:
        values = await handle[collection].distinct(field, compile_mongo_filter(where))
        return [value for value in values if value is not None]

    # Namespaces

    def supports_namespace(self, kind: NamespaceKind, url: str) -> bool:
        return kind == NamespaceKind.DATABASE

    async def create_namespace(self, handle: AsyncIOMotorDatabase, kind: NamespaceKind, name: str) -> None:
        self.require_namespace(kind, "", "create_namespace")
        await handle.client[name].create_collection(_PLACEHOLDER_COLLECTION)
        logger.info(f"Created database {name}")

    async def drop_namespace(self, handle: AsyncIOMotorDatabase, kind: NamespaceKind, name: str) -> None:
        self.require_namespace(kind, "", "drop_namespace")
        await handle.client.drop_database(name)
        logger.info(f"Dropped database {name}")

    async def list_namespaces(self, handle: AsyncIOMotorDatabase, kind: NamespaceKind) -> List[str]:
        self.require_namespace(kind, "", "list_namespaces")
        return sorted(await handle.client.list_database_names())
