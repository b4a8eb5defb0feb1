"""asyncpg adapter: one connection pool per tenant handle."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Mapping, Optional, Sequence

import asyncpg

from ....config.constants import AdapterKind, NamespaceKind
from ....utils.sanitize import quote_identifier, validate_identifier
from ..entities import ConnectionDescriptor, FilterTree, OrderBy
from ..utils import queries
from ..utils.filters import compile_sql_filter, parse_order_by
from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


def _table(collection: str) -> str:
    return quote_identifier(validate_identifier(collection, "collection"))


def _column(field: str) -> str:
    return quote_identifier(validate_identifier(field, "field"))


def _affected_rows(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 3" or "INSERT 0 1"
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _order_clause(order_by: OrderBy) -> str:
    parsed = parse_order_by(order_by)
    if not parsed:
        return ""
    return " ORDER BY " + ", ".join(
        f"{_column(field)} {'DESC' if descending else 'ASC'}" for field, descending in parsed
    )


class AsyncpgAdapter(BaseAdapter):
    """PostgreSQL through asyncpg pools.

    Handles are :class:`asyncpg.Pool` objects; inside a transaction they are
    the pool's acquired :class:`asyncpg.Connection`. Both expose the same
    ``fetch``/``execute`` surface, so every operation works on either.
    """

    kind = AdapterKind.ASYNCPG

    async def connect(self, descriptor: ConnectionDescriptor) -> asyncpg.Pool:
        options = {**self.driver_options, **descriptor.options}
        server_settings = dict(options.pop("server_settings", None) or {})
        if descriptor.schema:
            server_settings["search_path"] = quote_identifier(descriptor.schema)

        pool = await asyncpg.create_pool(
            dsn=descriptor.url,
            min_size=self.pool_min_size,
            max_size=self.pool_max_size,
            timeout=self.connect_timeout,
            server_settings=server_settings or None,
            **options,
        )
        logger.info(
            f"Created asyncpg pool {descriptor!r}: "
            f"min={self.pool_min_size}, max={self.pool_max_size}"
        )
        return pool

    async def disconnect(self, handle: asyncpg.Pool) -> None:
        await handle.close()

    async def execute(self, handle: Any, command: str, params: Optional[Sequence[Any]] = None) -> Any:
        args = list(params or [])
        if queries.returns_rows(command):
            rows = await handle.fetch(command, *args)
            return [dict(row) for row in rows]
        return await handle.execute(command, *args)

    async def insert(self, handle: Any, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        table = _table(collection)
        columns = list(records[0].keys())

        if all(list(record.keys()) == columns for record in records):
            statement = (
                f"INSERT INTO {table} ({', '.join(_column(c) for c in columns)}) "
                f"VALUES ({', '.join(f'${i}' for i in range(1, len(columns) + 1))})"
            )
            await handle.executemany(statement, [[record[c] for c in columns] for record in records])
            return len(records)

        for record in records:
            keys = list(record.keys())
            statement = (
                f"INSERT INTO {table} ({', '.join(_column(c) for c in keys)}) "
                f"VALUES ({', '.join(f'${i}' for i in range(1, len(keys) + 1))})"
            )
            await handle.execute(statement, *[record[k] for k in keys])
        return len(records)

    async def find(
        self,
        handle: Any,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[dict]:
        params: List[Any] = []
        statement = f"SELECT * FROM {_table(collection)} WHERE {compile_sql_filter(where, params)}"
        statement += _order_clause(order_by)
        if limit is not None:
            params.append(int(limit))
            statement += f" LIMIT ${len(params)}"
        rows = await handle.fetch(statement, *params)
        return [dict(row) for row in rows]

    async def update(
        self, handle: Any, collection: str, where: Optional[FilterTree], values: Mapping[str, Any]
    ) -> int:
        params: List[Any] = []
        assignments = []
        for field, value in values.items():
            params.append(value)
            assignments.append(f"{_column(field)} = ${len(params)}")
        condition = compile_sql_filter(where, params)
        status = await handle.execute(
            f"UPDATE {_table(collection)} SET {', '.join(assignments)} WHERE {condition}", *params
        )
        return _affected_rows(status)

    async def delete(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        params: List[Any] = []
        condition = compile_sql_filter(where, params)
        status = await handle.execute(f"DELETE FROM {_table(collection)} WHERE {condition}", *params)
        return _affected_rows(status)

    async def count(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        params: List[Any] = []
        condition = compile_sql_filter(where, params)
        return await handle.fetchval(f"SELECT count(*) FROM {_table(collection)} WHERE {condition}", *params)

    async def distinct(
        self, handle: Any, collection: str, field: str, where: Optional[FilterTree] = None
    ) -> List[Any]:
        params: List[Any] = []
        condition = compile_sql_filter(where, params)
        column = _column(field)
        rows = await handle.fetch(
            f"SELECT DISTINCT {column} FROM {_table(collection)} "
            f"WHERE {column} IS NOT NULL AND ({condition}) ORDER BY {column}",
            *params,
        )
        return [row[0] for row in rows]

    @asynccontextmanager
    async def transaction(self, handle: Any) -> AsyncIterator[Any]:
        if isinstance(handle, asyncpg.Pool):
            async with handle.acquire() as connection:
                async with connection.transaction():
                    yield connection
        else:
            async with handle.transaction():
                yield handle

    # Namespaces

    async def create_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        template = queries.CREATE_SCHEMA if kind == NamespaceKind.SCHEMA else queries.CREATE_DATABASE
        await handle.execute(template.format(name=quote_identifier(name)))
        logger.info(f"Created {kind.value} {name}")

    async def drop_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        template = queries.DROP_SCHEMA if kind == NamespaceKind.SCHEMA else queries.DROP_DATABASE
        await handle.execute(template.format(name=quote_identifier(name)))
        logger.info(f"Dropped {kind.value} {name}")

    async def list_namespaces(self, handle: Any, kind: NamespaceKind) -> List[str]:
        statement = queries.LIST_SCHEMAS if kind == NamespaceKind.SCHEMA else queries.LIST_DATABASES
        rows = await handle.fetch(statement)
        return [row[0] for row in rows]

    async def clone_namespace(self, handle: Any, source: str, target: str) -> None:
        async with self.transaction(handle) as connection:
            tables = await connection.fetch(queries.LIST_SCHEMA_TABLES, source)
            for row in tables:
                await connection.execute(
                    queries.CLONE_TABLE.format(
                        target=quote_identifier(target),
                        source=quote_identifier(source),
                        table=queries.quote_catalog_name(row["tablename"]),
                    )
                )
        logger.info(f"Cloned {len(tables)} table(s) from schema {source} into {target}")

    async def terminate_sessions(self, handle: Any, database: str) -> None:
        await handle.execute(queries.TERMINATE_SESSIONS, database)
