"""Adapter contract.

An adapter knows how to open and close one backend handle from a
:class:`ConnectionDescriptor`, how to run record operations on that handle,
and how to manage backend namespaces (schemas, databases) through an
administrative handle passed in explicitly. It never decides which tenant a
handle belongs to; strategies do that.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Mapping, Optional, Sequence

from ....config.constants import AdapterKind, NamespaceKind, ReservedNamespaces
from ....core.exceptions import UnsupportedForAdapter
from ...middleware.tenant_connection import RowScopedConnection, TenantConnection
from ..entities import ConnectionDescriptor, FilterTree, OrderBy

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """Backend driver behind every tenant connection."""

    kind: AdapterKind
    system_database: str = "postgres"
    reserved_databases: FrozenSet[str] = ReservedNamespaces.POSTGRES_DATABASES

    def __init__(
        self,
        pool_min_size: int = 2,
        pool_max_size: int = 10,
        connect_timeout: float = 30.0,
        driver_options: Optional[Dict[str, Any]] = None,
    ):
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self.connect_timeout = connect_timeout
        self.driver_options: Dict[str, Any] = dict(driver_options or {})

    # Handle lifecycle

    @abstractmethod
    async def connect(self, descriptor: ConnectionDescriptor) -> Any:
        """Open a backend handle for the descriptor."""
        pass

    @abstractmethod
    async def disconnect(self, handle: Any) -> None:
        """Release a handle returned by :meth:`connect`."""
        pass

    # Record operations

    @abstractmethod
    async def execute(self, handle: Any, command: Any, params: Optional[Any] = None) -> Any:
        """Run a raw backend command."""
        pass

    @abstractmethod
    async def insert(self, handle: Any, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        pass

    @abstractmethod
    async def find(
        self,
        handle: Any,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[Any]:
        pass

    @abstractmethod
    async def update(
        self, handle: Any, collection: str, where: Optional[FilterTree], values: Mapping[str, Any]
    ) -> int:
        pass

    @abstractmethod
    async def delete(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        pass

    @abstractmethod
    async def count(self, handle: Any, collection: str, where: Optional[FilterTree] = None) -> int:
        pass

    @abstractmethod
    async def distinct(
        self, handle: Any, collection: str, field: str, where: Optional[FilterTree] = None
    ) -> List[Any]:
        """Distinct non-null values of ``field``."""
        pass

    @asynccontextmanager
    async def transaction(self, handle: Any) -> AsyncIterator[Any]:
        """Yield a handle whose operations commit or roll back together.

        Backends without multi-statement transactions yield the handle itself.
        """
        yield handle

    # Namespace management, always through an administrative handle

    def supports_namespace(self, kind: NamespaceKind, url: str) -> bool:
        return True

    def require_namespace(self, kind: NamespaceKind, url: str, operation: str) -> None:
        if not self.supports_namespace(kind, url):
            raise UnsupportedForAdapter(
                operation,
                f"adapter '{self.kind.value}'",
                f"backend has no {kind.value} namespaces",
            )

    @abstractmethod
    async def create_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        pass

    @abstractmethod
    async def drop_namespace(self, handle: Any, kind: NamespaceKind, name: str) -> None:
        pass

    @abstractmethod
    async def list_namespaces(self, handle: Any, kind: NamespaceKind) -> List[str]:
        pass

    async def clone_namespace(self, handle: Any, source: str, target: str) -> None:
        """Copy table structure from one schema into another."""
        raise UnsupportedForAdapter(
            "clone_namespace", f"adapter '{self.kind.value}'", "template cloning is not available"
        )

    async def terminate_sessions(self, handle: Any, database: str) -> None:
        """Disconnect other sessions from a database about to be dropped."""
        return None

    def default_tracked_collections(self, tenant_field: str) -> List[str]:
        """Collections known to carry ``tenant_field``, when the adapter can tell."""
        return []

    # Tenant wrapping

    def wrap_for_tenant(
        self,
        handle: Any,
        tenant_id: str,
        descriptor: Optional[ConnectionDescriptor] = None,
        tenant_field: Optional[str] = None,
    ) -> TenantConnection:
        """Bind a handle to a tenant.

        With ``tenant_field`` every operation is rewritten to stay inside the
        tenant's rows; without it the handle's namespace already provides the
        isolation.
        """
        if tenant_field:
            return RowScopedConnection(self, handle, tenant_id, tenant_field, descriptor=descriptor)
        return TenantConnection(self, handle, tenant_id, descriptor=descriptor)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(pool={self.pool_min_size}-{self.pool_max_size})"
