"""Ambient tenant context.

Holds the current tenant id and connection in :mod:`contextvars`, so code
deep in a call stack can reach the tenant's connection without threading it
through every signature. Each asyncio task sees its own values.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional, TypeVar

from ..core.exceptions import TenantConnectError
from ..features.middleware.tenant_connection import TenantConnection

if TYPE_CHECKING:
    from ..services.tenant_registry import TenantRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_current_tenant_id: ContextVar[Optional[str]] = ContextVar("neo_tenantdb_tenant_id", default=None)
_current_connection: ContextVar[Optional[TenantConnection]] = ContextVar(
    "neo_tenantdb_connection", default=None
)


def current_tenant_id() -> Optional[str]:
    """Tenant id bound to the running context, if any."""
    return _current_tenant_id.get()


def current_connection() -> Optional[TenantConnection]:
    """Tenant connection bound to the running context, if any."""
    return _current_connection.get()


def require_connection() -> TenantConnection:
    connection = _current_connection.get()
    if connection is None:
        raise TenantConnectError(None, "resolve current tenant", "no tenant bound to this context")
    return connection


@contextmanager
def bind_tenant(connection: TenantConnection) -> Iterator[TenantConnection]:
    """Bind a connection (and its tenant) to the current context."""
    tenant_token = _current_tenant_id.set(connection.tenant_id)
    connection_token = _current_connection.set(connection)
    try:
        yield connection
    finally:
        _current_connection.reset(connection_token)
        _current_tenant_id.reset(tenant_token)


class TenantContext:
    """Runs work inside a tenant scope.

    Usage:
        context = TenantContext(registry)
        await context.run("acme", sync_invoices, batch_id)

        # anywhere below sync_invoices
        conn = current_connection()
    """

    def __init__(self, registry: "TenantRegistry"):
        self.registry = registry

    async def run(self, tenant_id: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``fn(*args, **kwargs)`` with the tenant's connection bound and leased."""
        connection = await self.registry.for_tenant(tenant_id)
        async with connection:
            with bind_tenant(connection):
                logger.debug(f"Running {getattr(fn, '__name__', fn)} for tenant {connection.tenant_id}")
                return await fn(*args, **kwargs)

    @staticmethod
    def get_tenant_id() -> Optional[str]:
        return current_tenant_id()

    @staticmethod
    def get_connection() -> Optional[TenantConnection]:
        return current_connection()
