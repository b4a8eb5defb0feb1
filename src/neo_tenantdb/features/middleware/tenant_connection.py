"""Tenant-bound connection handles.

A :class:`TenantConnection` pairs one backend handle with one tenant. The
handle is shared: the connection cache hands the same object to every
caller for the same tenant, so the connection counts its in-flight users and
:meth:`TenantConnection.close` waits for them before the backend handle is
released. Operations on a closed connection fail with
:class:`TenantConnectError` instead of reaching a released handle.

:class:`RowScopedConnection` adds row-level isolation on top: every filter is
conjoined with the tenant clause, inserts are stamped with the tenant value,
and raw commands are refused.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, List, Mapping, Optional, Sequence

from ...core.exceptions import TenantConnectError, TenantQueryError, UnsupportedForStrategy
from ...utils.error_handling import TenantOperationContext
from .scoping import check_update_values, scope_filter, stamp_records

if TYPE_CHECKING:
    from ..adapters.entities import ConnectionDescriptor
    from ..adapters.repositories.base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


class TenantConnection:
    """Backend handle bound to one tenant whose namespace isolates it."""

    def __init__(
        self,
        adapter: "BaseAdapter",
        handle: Any,
        tenant_id: str,
        descriptor: Optional["ConnectionDescriptor"] = None,
        *,
        close_on_release: bool = False,
        parent: Optional["TenantConnection"] = None,
    ):
        self.adapter = adapter
        self.tenant_id = tenant_id
        self.descriptor = descriptor
        self.close_on_release = close_on_release
        self._handle = handle
        self._parent = parent
        self._refs = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False
        self._closed = False

    @property
    def handle(self) -> Any:
        """The raw backend handle (pool, engine, session factory or database)."""
        return self._handle

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return self._refs

    # Reference counting

    def _acquire(self) -> None:
        if self._closing:
            raise TenantConnectError(self.tenant_id, "use connection", "connection has been closed")
        self._refs += 1
        self._idle.clear()

    def _release(self) -> None:
        self._refs -= 1
        if self._refs <= 0:
            self._refs = 0
            self._idle.set()

    async def __aenter__(self) -> "TenantConnection":
        self._acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._release()
        if self.close_on_release and self._refs == 0:
            await self.close()

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        self._acquire()
        try:
            async with TenantOperationContext(name, self.tenant_id, TenantQueryError):
                yield
        finally:
            self._release()

    # Hooks for scoped subclasses

    def _scope(self, where: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
        return where

    def _prepare_records(self, records: Sequence[Mapping[str, Any]]) -> List[dict]:
        return [dict(record) for record in records]

    def _prepare_values(self, values: Mapping[str, Any]) -> dict:
        return dict(values)

    def _derive(self, handle: Any) -> "TenantConnection":
        return TenantConnection(self.adapter, handle, self.tenant_id, self.descriptor, parent=self)

    # Record operations

    async def insert(self, collection: str, record: Mapping[str, Any]) -> int:
        return await self.insert_many(collection, [record])

    async def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        prepared = self._prepare_records(records)
        if not prepared:
            return 0
        async with self._operation("insert"):
            return await self.adapter.insert(self._handle, collection, prepared)

    async def find(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        order_by: Any = None,
    ) -> List[Any]:
        scoped = self._scope(where)
        async with self._operation("find"):
            return await self.adapter.find(self._handle, collection, scoped, limit=limit, order_by=order_by)

    async def find_one(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Any = None,
    ) -> Optional[Any]:
        rows = await self.find(collection, where, limit=1, order_by=order_by)
        return rows[0] if rows else None

    async def update(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]],
        values: Mapping[str, Any],
    ) -> int:
        prepared = self._prepare_values(values)
        if not prepared:
            raise TenantQueryError(self.tenant_id, "update", "no values to update")
        scoped = self._scope(where)
        async with self._operation("update"):
            return await self.adapter.update(self._handle, collection, scoped, prepared)

    async def delete(self, collection: str, where: Optional[Mapping[str, Any]] = None) -> int:
        scoped = self._scope(where)
        async with self._operation("delete"):
            return await self.adapter.delete(self._handle, collection, scoped)

    async def count(self, collection: str, where: Optional[Mapping[str, Any]] = None) -> int:
        scoped = self._scope(where)
        async with self._operation("count"):
            return await self.adapter.count(self._handle, collection, scoped)

    async def distinct(
        self, collection: str, field: str, where: Optional[Mapping[str, Any]] = None
    ) -> List[Any]:
        scoped = self._scope(where)
        async with self._operation("distinct"):
            return await self.adapter.distinct(self._handle, collection, field, scoped)

    async def execute(self, command: Any, params: Optional[Any] = None) -> Any:
        """Run a raw backend command inside the tenant's namespace."""
        async with self._operation("execute"):
            return await self.adapter.execute(self._handle, command, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["TenantConnection"]:
        """Group operations so they commit or roll back together.

        Usage:
            async with conn.transaction() as tx:
                await tx.insert("orders", {...})
                await tx.update("stock", {...}, {...})
        """
        self._acquire()
        try:
            async with self.adapter.transaction(self._handle) as tx_handle:
                yield self._derive(tx_handle)
        finally:
            self._release()

    async def close(self) -> None:
        """Wait for in-flight work, then release the backend handle.

        Idempotent. Handles derived from a transaction never own the backend
        handle and only stop accepting work.
        """
        if self._closed:
            return
        self._closing = True
        if self._refs:
            logger.debug(f"Waiting for {self._refs} in-flight operation(s) on tenant {self.tenant_id}")
        await self._idle.wait()
        if self._closed:
            return
        self._closed = True
        if self._parent is not None:
            return
        async with TenantOperationContext("disconnect", self.tenant_id, TenantConnectError):
            await self.adapter.disconnect(self._handle)
        logger.debug(f"Closed connection for tenant {self.tenant_id}")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "closing" if self._closing else "open"
        return f"{type(self).__name__}(tenant={self.tenant_id!r}, {state}, in_flight={self._refs})"


class RowScopedConnection(TenantConnection):
    """Connection to a shared namespace that only ever sees one tenant's rows."""

    def __init__(
        self,
        adapter: "BaseAdapter",
        handle: Any,
        tenant_id: str,
        tenant_field: str,
        descriptor: Optional["ConnectionDescriptor"] = None,
        *,
        close_on_release: bool = False,
        parent: Optional[TenantConnection] = None,
    ):
        super().__init__(
            adapter,
            handle,
            tenant_id,
            descriptor,
            close_on_release=close_on_release,
            parent=parent,
        )
        self.tenant_field = tenant_field

    @property
    def handle(self) -> Any:
        raise UnsupportedForStrategy(
            "handle",
            "row-level isolation",
            "the raw handle is not tenant scoped, use execute_unscoped() deliberately",
            tenant_id=self.tenant_id,
        )

    def _scope(self, where: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
        return scope_filter(where, self.tenant_field, self.tenant_id)

    def _prepare_records(self, records: Sequence[Mapping[str, Any]]) -> List[dict]:
        return stamp_records(records, self.tenant_field, self.tenant_id)

    def _prepare_values(self, values: Mapping[str, Any]) -> dict:
        return check_update_values(values, self.tenant_field, self.tenant_id)

    def _derive(self, handle: Any) -> "RowScopedConnection":
        return RowScopedConnection(
            self.adapter, handle, self.tenant_id, self.tenant_field, self.descriptor, parent=self
        )

    async def execute(self, command: Any, params: Optional[Any] = None) -> Any:
        raise UnsupportedForStrategy(
            "execute",
            "row-level isolation",
            "raw commands cannot be tenant scoped, use execute_unscoped()",
            tenant_id=self.tenant_id,
        )

    async def execute_unscoped(self, command: Any, params: Optional[Any] = None) -> Any:
        """Run a raw command against the shared namespace without tenant scoping."""
        logger.warning(f"Unscoped command issued on behalf of tenant {self.tenant_id}")
        return await super().execute(command, params)
