"""Tests for the Motor adapter against a mocked database."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo import DESCENDING

from neo_tenantdb.config.constants import NamespaceKind
from neo_tenantdb.core.exceptions import ConfigurationError, UnsupportedForAdapter
from neo_tenantdb.features.adapters import MotorAdapter
from neo_tenantdb.features.strategies import SchemaStrategy
from neo_tenantdb.config.settings import TenantDbSettings


@pytest.fixture
def adapter():
    return MotorAdapter()


@pytest.fixture
def collection():
    """Mock Motor collection with a chainable cursor."""
    collection = MagicMock()
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[{"_id": 1, "tenant_id": "acme"}])
    collection.find.return_value = cursor
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=[1, 2]))
    collection.update_many = AsyncMock(return_value=MagicMock(matched_count=2))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=4))
    collection.count_documents = AsyncMock(return_value=9)
    collection.distinct = AsyncMock(return_value=["acme", None, "other"])
    return collection


@pytest.fixture
def database(collection):
    """Mock AsyncIOMotorDatabase."""
    database = MagicMock()
    database.__getitem__.return_value = collection
    database.client.list_database_names = AsyncMock(return_value=["local", "admin", "acme"])
    database.client.drop_database = AsyncMock()
    database.client.__getitem__.return_value.create_collection = AsyncMock()
    return database


class TestMotorRecords:
    """Test record operations."""

    @pytest.mark.asyncio
    async def test_find_compiles_filter_and_sort(self, adapter, database, collection):
        rows = await adapter.find(database, "users", {"tenant_id": "acme"}, limit=5, order_by="-created_at")

        assert rows == [{"_id": 1, "tenant_id": "acme"}]
        collection.find.assert_called_once_with({"tenant_id": "acme"})
        cursor = collection.find.return_value
        cursor.sort.assert_called_once_with([("created_at", DESCENDING)])
        cursor.limit.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_write_operations(self, adapter, database, collection):
        assert await adapter.insert(database, "users", [{"a": 1}, {"a": 2}]) == 2
        assert await adapter.update(database, "users", {"a": 1}, {"b": 2}) == 2
        collection.update_many.assert_awaited_once_with({"a": 1}, {"$set": {"b": 2}})
        assert await adapter.delete(database, "users", {"OR": [{"a": 1}, {"a": 2}]}) == 4
        collection.delete_many.assert_awaited_once_with({"$or": [{"a": 1}, {"a": 2}]})

    @pytest.mark.asyncio
    async def test_count_and_distinct(self, adapter, database):
        assert await adapter.count(database, "users") == 9
        assert await adapter.distinct(database, "users", "tenant_id") == ["acme", "other"]


class TestMotorNamespaces:
    """Test database namespaces and the missing schema concept."""

    @pytest.mark.asyncio
    async def test_databases(self, adapter, database):
        assert await adapter.list_namespaces(database, NamespaceKind.DATABASE) == ["acme", "admin", "local"]
        await adapter.drop_namespace(database, NamespaceKind.DATABASE, "acme")
        database.client.drop_database.assert_awaited_once_with("acme")

    @pytest.mark.asyncio
    async def test_schemas_unsupported(self, adapter, database):
        with pytest.raises(UnsupportedForAdapter):
            await adapter.create_namespace(database, NamespaceKind.SCHEMA, "acme")

    def test_schema_strategy_rejected_at_startup(self, adapter):
        settings = TenantDbSettings(url="mongodb://localhost/app", strategy="schema", adapter="motor")
        with pytest.raises(ConfigurationError):
            SchemaStrategy(adapter, settings)

    def test_reserved_databases(self, adapter):
        assert adapter.system_database == "admin"
        assert {"admin", "config", "local"} <= adapter.reserved_databases
