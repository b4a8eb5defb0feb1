"""SQLAlchemy adapters.

:class:`SqlAlchemyCoreAdapter` drives an :class:`AsyncEngine` with Core
statements (query-builder style). :class:`SqlAlchemyOrmAdapter` drives mapped
classes through :class:`AsyncSession` (ORM style). Both bind a schema with
``schema_translate_map`` and, on PostgreSQL via asyncpg, the connection
search path, so Core tables, ORM models and raw text all land in the
tenant's namespace.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Type

from sqlalchemy import (
    ColumnElement,
    MetaData,
    and_,
    column as sa_column,
    delete as sa_delete,
    func,
    insert as sa_insert,
    literal_column,
    not_,
    or_,
    select,
    table as sa_table,
    text,
    true,
    false,
    update as sa_update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ....config.constants import AdapterKind, NamespaceKind, ReservedNamespaces
from ....utils.sanitize import quote_identifier, validate_identifier
from ..entities import ConnectionDescriptor, FilterTree, OrderBy
from ..utils import queries
from ..utils.filters import AND, NOT, OR, filter_fields, is_operator_map, parse_order_by
from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)

# Namespace management relies on PostgreSQL catalogs and its system database
_SCHEMA_BACKENDS = frozenset({"postgresql"})
_DATABASE_BACKENDS = frozenset({"postgresql"})


def _backend_name(url: str) -> str:
    return make_url(url).get_backend_name()


def compile_sqlalchemy_filter(where: Optional[FilterTree], columns: Any) -> ColumnElement:
    """Compile a filter tree against a table's column collection."""
    if not where:
        return true()
    if not isinstance(where, Mapping):
        raise ValueError(f"Filter must be a mapping, got {type(where).__name__}")

    clauses = []
    for key, value in where.items():
        if key == AND:
            branches = [compile_sqlalchemy_filter(b, columns) for b in value]
            clauses.append(and_(*branches) if branches else true())
        elif key == OR:
            branches = [compile_sqlalchemy_filter(b, columns) for b in value]
            clauses.append(or_(*branches) if branches else false())
        elif key == NOT:
            clauses.append(not_(compile_sqlalchemy_filter(value, columns)))
        else:
            clauses.append(_condition(_lookup(columns, key), key, value))

    return clauses[0] if len(clauses) == 1 else and_(*clauses)


def _lookup(columns: Any, field: str) -> Any:
    try:
        return columns[field]
    except KeyError:
        raise ValueError(f"Unknown field: {field!r}") from None


def _condition(col: Any, field: str, value: Any) -> ColumnElement:
    if value is None:
        return col.is_(None)
    if isinstance(value, (list, tuple, set, frozenset)):
        return col.in_(list(value))
    if isinstance(value, Mapping):
        if not is_operator_map(value):
            raise ValueError(f"Unknown filter operator(s) for {field!r}: {sorted(value)}")
        parts = []
        for op, operand in value.items():
            if op == "eq":
                parts.append(col.is_(None) if operand is None else col == operand)
            elif op == "ne":
                parts.append(col.is_not(None) if operand is None else col.is_distinct_from(operand))
            elif op == "gt":
                parts.append(col > operand)
            elif op == "gte":
                parts.append(col >= operand)
            elif op == "lt":
                parts.append(col < operand)
            elif op == "lte":
                parts.append(col <= operand)
            elif op == "in":
                parts.append(col.in_(list(operand)))
        return parts[0] if len(parts) == 1 else and_(*parts)
    return col == value


class SqlAlchemyCoreAdapter(BaseAdapter):
    """SQLAlchemy Core over :class:`AsyncEngine`.

    Collections resolve to tables of the supplied :class:`MetaData`; names it
    does not know fall back to lightweight ``table()`` constructs built from
    the fields an operation touches.
    """

    kind = AdapterKind.SQLALCHEMY

    def __init__(self, metadata: Optional[MetaData] = None, **kwargs):
        super().__init__(**kwargs)
        self.metadata = metadata

    # Engine lifecycle

    def _engine_kwargs(self, descriptor: ConnectionDescriptor) -> Dict[str, Any]:
        url = make_url(descriptor.url)
        kw: Dict[str, Any] = {**self.driver_options, **descriptor.options}

        if url.get_backend_name() == "sqlite":
            kw.setdefault("poolclass", StaticPool)
            kw.setdefault("connect_args", {"check_same_thread": False})
        else:
            kw.setdefault("pool_size", self.pool_min_size)
            kw.setdefault("max_overflow", max(self.pool_max_size - self.pool_min_size, 0))
            kw.setdefault("pool_timeout", self.connect_timeout)
            kw.setdefault("pool_pre_ping", True)

        if descriptor.schema:
            kw["execution_options"] = {
                **kw.get("execution_options", {}),
                "schema_translate_map": {None: descriptor.schema},
            }
            if url.get_driver_name() == "asyncpg":
                connect_args = dict(kw.get("connect_args", {}))
                server_settings = dict(connect_args.get("server_settings", {}))
                server_settings["search_path"] = quote_identifier(descriptor.schema)
                connect_args["server_settings"] = server_settings
                kw["connect_args"] = connect_args
        return kw

    async def _create_engine(self, descriptor: ConnectionDescriptor) -> AsyncEngine:
        engine = create_async_engine(descriptor.url, **self._engine_kwargs(descriptor))
        try:
            async with engine.connect() as connection:
                await connection.execute(text(queries.BASIC_HEALTH_CHECK))
        except Exception:
            await engine.dispose()
            raise
        logger.info(f"Created SQLAlchemy engine {descriptor!r}")
        return engine

    async def connect(self, descriptor: ConnectionDescriptor) -> AsyncEngine:
        return await self._create_engine(descriptor)

    async def disconnect(self, handle: AsyncEngine) -> None:
        await handle.dispose()

    def _engine_of(self, handle: Any) -> AsyncEngine:
        if isinstance(handle, AsyncConnection):
            return handle.engine
        return handle

    @asynccontextmanager
    async def _begin(self, handle: Any) -> AsyncIterator[AsyncConnection]:
        if isinstance(handle, AsyncConnection):
            yield handle
        else:
            async with handle.begin() as connection:
                yield connection

    @asynccontextmanager
    async def transaction(self, handle: Any) -> AsyncIterator[Any]:
        async with self._begin(handle) as connection:
            yield connection

    # Tables

    def _table(self, collection: str, fields: Sequence[str] = ()) -> Any:
        validate_identifier(collection, "collection")
        if self.metadata is not None and collection in self.metadata.tables:
            return self.metadata.tables[collection]
        names = sorted({validate_identifier(f, "field") for f in fields})
        return sa_table(collection, *(sa_column(name) for name in names))

    def default_tracked_collections(self, tenant_field: str) -> List[str]:
        if self.metadata is None:
            return []
        return [
            name for name, tbl in self.metadata.tables.items()
            if tenant_field in tbl.c and tbl.schema is None
        ]

    @staticmethod
    def _order(tbl: Any, order_by: OrderBy) -> List[Any]:
        return [
            _lookup(tbl.c, field).desc() if descending else _lookup(tbl.c, field).asc()
            for field, descending in parse_order_by(order_by)
        ]

    # Record operations

    async def execute(self, handle: Any, command: Any, params: Optional[Mapping[str, Any]] = None) -> Any:
        statement = text(command) if isinstance(command, str) else command
        async with self._begin(handle) as connection:
            result = await connection.execute(statement, dict(params or {}))
            if result.returns_rows:
                return [dict(row._mapping) for row in result]
            return result.rowcount

    async def insert(self, handle: Any, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        fields = {key for record in records for key in record}
        tbl = self._table(collection, fields)
        async with self._begin(handle) as connection:
            first_keys = set(records[0])
            if all(set(record) == first_keys for record in records):
                await connection.execute(sa_insert(tbl), [dict(r) for r in records])
            else:
                for record in records:
                    await connection.execute(sa_insert(tbl).values(**record))
        return len(records)

    async def find(
        self,
        handle: Any,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[dict]:
        order_fields = [field for field, _ in parse_order_by(order_by)]
        tbl = self._table(collection, [*filter_fields(where), *order_fields])
        if self.metadata is not None and collection in self.metadata.tables:
            statement = select(tbl)
        else:
            statement = select(literal_column("*")).select_from(tbl)
        statement = statement.where(compile_sqlalchemy_filter(where, tbl.c))
        order = self._order(tbl, order_by)
        if order:
            statement = statement.order_by(*order)
        if limit is not None:
            statement = statement.limit(limit)
        async with self._begin(handle) as connection:
            result = await connection.execute(statement)
            return [dict(row._mapping) for row in result]

    async def update(
        self, handle: Any, collection: str, where: Optional[FilterTree], values: Mapping[str, Any]
    ) -> int:
        tbl = self._table(collection, [*filter_fields(where), *values])
        statement = sa_update(tbl).where(compile_sqlalchemy_filter(where, tbl.c)).values(**values)
        async with self._begin(handle) as connection:
            result = await connection.execute(statement)
            return result.rowcount

    async def delete(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        tbl = self._table(collection, filter_fields(where))
        statement = sa_delete(tbl).where(compile_sqlalchemy_filter(where, tbl.c))
        async with self._begin(handle) as connection:
            result = await connection.execute(statement)
            return result.rowcount

    async def count(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        tbl = self._table(collection, filter_fields(where))
        statement = select(func.count()).select_from(tbl).where(compile_sqlalchemy_filter(where, tbl.c))
        async with self._begin(handle) as connection:
            return (await connection.execute(statement)).scalar_one()

    async def distinct(
        self, handle: Any, collection: str, field: str, where: Optional[FilterTree] = None
    ) -> List[Any]:
        tbl = self._table(collection, [field, *filter_fields(where)])
        col = _lookup(tbl.c, field)
        statement = (
            select(col)
            .distinct()
            .where(col.is_not(None), compile_sqlalchemy_filter(where, tbl.c))
            .order_by(col)
        )
        async with self._begin(handle) as connection:
            return list((await connection.execute(statement)).scalars().all())

    # Namespaces

    def supports_namespace(self, kind: NamespaceKind, url: str) -> bool:
        backends = _SCHEMA_BACKENDS if kind == NamespaceKind.SCHEMA else _DATABASE_BACKENDS
        return _backend_name(url) in backends

    def _quote(self, engine: AsyncEngine, name: str) -> str:
        # Namespace names are built from sanitized tenant ids
        return engine.dialect.identifier_preparer.quote_identifier(name)

    @asynccontextmanager
    async def _autocommit(self, handle: Any) -> AsyncIterator[AsyncConnection]:
        engine = self._engine_of(handle)
        async with engine.connect() as connection:
            connection = await connection.execution_options(isolation_level="AUTOCOMMIT")
            yield connection

    async def create_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        engine = self._engine_of(handle)
        self.require_namespace(kind, str(engine.url), "create_namespace")
        template = queries.CREATE_SCHEMA if kind == NamespaceKind.SCHEMA else queries.CREATE_DATABASE
        async with self._autocommit(handle) as connection:
            await connection.execute(text(template.format(name=self._quote(engine, name))))
        logger.info(f"Created {kind.value} {name}")

    async def drop_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        engine = self._engine_of(handle)
        self.require_namespace(kind, str(engine.url), "drop_namespace")
        template = queries.DROP_SCHEMA if kind == NamespaceKind.SCHEMA else queries.DROP_DATABASE
        async with self._autocommit(handle) as connection:
            await connection.execute(text(template.format(name=self._quote(engine, name))))
        logger.info(f"Dropped {kind.value} {name}")

    async def list_namespaces(self, handle: Any, kind: NamespaceKind) -> List[str]:
        engine = self._engine_of(handle)
        self.require_namespace(kind, str(engine.url), "list_namespaces")
        statement = queries.LIST_SCHEMAS if kind == NamespaceKind.SCHEMA else queries.LIST_DATABASES
        async with self._begin(handle) as connection:
            return list((await connection.execute(text(statement))).scalars().all())

    async def clone_namespace(self, handle: Any, source: str, target: str) -> None:
        engine = self._engine_of(handle)
        self.require_namespace(NamespaceKind.SCHEMA, str(engine.url), "clone_namespace")
        async with self._begin(handle) as connection:
            tables = (
                await connection.execute(text(queries.LIST_SCHEMA_TABLES_NAMED), {"schema": source})
            ).scalars().all()
            for name in tables:
                await connection.execute(
                    text(
                        queries.CLONE_TABLE.format(
                            target=quote_identifier(target),
                            source=quote_identifier(source),
                            table=queries.quote_catalog_name(name),
                        )
                    )
                )
        logger.info(f"Cloned {len(tables)} table(s) from schema {source} into {target}")

    async def terminate_sessions(self, handle: Any, database: str) -> None:
        engine = self._engine_of(handle)
        self.require_namespace(NamespaceKind.DATABASE, str(engine.url), "terminate_sessions")
        async with self._autocommit(handle) as connection:
            await connection.execute(text(queries.TERMINATE_SESSIONS_NAMED), {"database": database})


@dataclass
class OrmHandle:
    """Engine plus the session factory bound to it."""

    engine: AsyncEngine
    sessionmaker: async_sessionmaker


class SqlAlchemyOrmAdapter(SqlAlchemyCoreAdapter):
    """SQLAlchemy ORM over :class:`AsyncSession`.

    Collections resolve to mapped classes of the declarative base, by table
    name or class name. ``find`` returns model instances; sessions use
    ``expire_on_commit=False`` so they stay readable after the session ends.
    """

    kind = AdapterKind.SQLALCHEMY_ORM

    def __init__(self, declarative_base: Any, **kwargs):
        super().__init__(metadata=declarative_base.metadata, **kwargs)
        self.declarative_base = declarative_base
        self._models: Dict[str, Type[Any]] = {}
        for mapper in declarative_base.registry.mappers:
            model = mapper.class_
            self._models[model.__name__] = model
            table_name = getattr(model, "__tablename__", None)
            if table_name:
                self._models[table_name] = model

    def model_for(self, collection: str) -> Type[Any]:
        try:
            return self._models[collection]
        except KeyError:
            raise ValueError(f"No mapped model for collection {collection!r}") from None

    async def connect(self, descriptor: ConnectionDescriptor) -> OrmHandle:
        engine = await self._create_engine(descriptor)
        return OrmHandle(engine=engine, sessionmaker=async_sessionmaker(engine, expire_on_commit=False))

    async def disconnect(self, handle: OrmHandle) -> None:
        await handle.engine.dispose()

    def _engine_of(self, handle: Any) -> AsyncEngine:
        if isinstance(handle, OrmHandle):
            return handle.engine
        if isinstance(handle, AsyncSession):
            return handle.bind
        return super()._engine_of(handle)

    @asynccontextmanager
    async def _session(self, handle: Any) -> AsyncIterator[AsyncSession]:
        if isinstance(handle, AsyncSession):
            yield handle
        else:
            async with handle.sessionmaker() as session:
                async with session.begin():
                    yield session

    @asynccontextmanager
    async def transaction(self, handle: Any) -> AsyncIterator[Any]:
        async with self._session(handle) as session:
            yield session

    @asynccontextmanager
    async def _begin(self, handle: Any) -> AsyncIterator[Any]:
        # Core statements run on the session's connection
        async with self._session(handle) as session:
            yield await session.connection()

    async def insert(self, handle: Any, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        model = self.model_for(collection)
        async with self._session(handle) as session:
            session.add_all([model(**record) for record in records])
            await session.flush()
        return len(records)

    async def find(
        self,
        handle: Any,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[Any]:
        model = self.model_for(collection)
        tbl = model.__table__
        statement = select(model).where(compile_sqlalchemy_filter(where, tbl.c))
        order = self._order(tbl, order_by)
        if order:
            statement = statement.order_by(*order)
        if limit is not None:
            statement = statement.limit(limit)
        async with self._session(handle) as session:
            return list((await session.scalars(statement)).all())

    async def update(
        self, handle: Any, collection: str, where: Optional[FilterTree], values: Mapping[str, Any]
    ) -> int:
        model = self.model_for(collection)
        statement = (
            sa_update(model)
            .where(compile_sqlalchemy_filter(where, model.__table__.c))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session(handle) as session:
            return (await session.execute(statement)).rowcount

    async def delete(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        model = self.model_for(collection)
        statement = (
            sa_delete(model)
            .where(compile_sqlalchemy_filter(where, model.__table__.c))
            .execution_options(synchronize_session=False)
        )
        async with self._session(handle) as session:
            return (await session.execute(statement)).rowcount

    def _table(self, collection: str, fields: Sequence[str] = ()) -> Any:
        if collection in self._models:
            return self._models[collection].__table__
        return super()._table(collection, fields)
