"""Tenant registry: the application-facing façade.

Usage:
    db = create_tenant_db(url="postgresql://app@localhost/app", strategy="schema")

    await db.create_tenant("acme")
    async with db.tenant("acme") as conn:
        await conn.insert("users", {"email": "a@acme.test"})

    await db.disconnect()
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from ..config.settings import IsolationDescriptor, TenantDbSettings
from ..core.exceptions import TenantAlreadyExists, TenantConnectError
from ..features.adapters.repositories.base_adapter import BaseAdapter
from ..features.cache import ConnectionCache
from ..features.middleware.tenant_connection import TenantConnection
from ..features.strategies import BaseStrategy, CreateTenantOptions
from ..utils.sanitize import sanitize_tenant_id

logger = logging.getLogger(__name__)


@dataclass
class TenantDbStats:
    """Registry statistics."""

    cached_connections: int
    total_connections: int
    strategy: str
    adapter: str
    connection_counts: Dict[str, int] = field(default_factory=dict)
    cache_enabled: bool = True
    ttl_seconds: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TenantRegistry:
    """Routes tenant ids to isolated connections and manages tenant lifecycle.

    Every public operation sanitizes the tenant id first; the sanitized form
    is the cache key and the name strategies build namespaces from.
    """

    def __init__(
        self,
        settings: TenantDbSettings,
        descriptor: IsolationDescriptor,
        adapter: BaseAdapter,
        strategy: BaseStrategy,
        cache: ConnectionCache,
    ):
        self._settings = settings
        self._descriptor = descriptor
        self._adapter = adapter
        self._strategy = strategy
        self._cache = cache
        self._closed = False
        self._disconnect_lock = asyncio.Lock()
        self._signal_loop: Optional[asyncio.AbstractEventLoop] = None
        self._signals: List[int] = []

    async def __aenter__(self) -> "TenantRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @property
    def closed(self) -> bool:
        return self._closed

    # Connections

    async def for_tenant(self, tenant_id: str) -> TenantConnection:
        """Return the tenant's connection, establishing it when not cached.

        The connection is shared with other callers. Hold it with
        ``async with`` (or use :meth:`tenant`) so eviction waits for you.
        A handle kept without a lease may be evicted between calls, after
        which its operations raise :class:`TenantConnectError`; call
        ``for_tenant`` again instead of storing the result.
        """
        key = sanitize_tenant_id(tenant_id)
        if self._closed:
            raise TenantConnectError(key, "acquire connection", "tenant registry is disconnected")
        return await self._cache.acquire(key, lambda: self._strategy.get_connection(key))

    @asynccontextmanager
    async def tenant(self, tenant_id: str) -> AsyncIterator[TenantConnection]:
        """Lease the tenant's connection for the duration of the block."""
        connection = await self.for_tenant(tenant_id)
        async with connection:
            yield connection

    # Lifecycle

    async def create_tenant(
        self,
        tenant_id: str,
        template: Optional[str] = None,
        run_migrations: Optional[bool] = None,
    ) -> None:
        """Provision a tenant's namespace.

        Raises:
            TenantAlreadyExists: If the tenant already exists
        """
        key = sanitize_tenant_id(tenant_id)
        if await self._strategy.tenant_exists(key):
            raise TenantAlreadyExists(key)
        await self._strategy.create_tenant(key, CreateTenantOptions(template=template, run_migrations=run_migrations))
        logger.info(f"Created tenant {key} ({self._descriptor.strategy.value} isolation)")

    async def delete_tenant(self, tenant_id: str) -> None:
        """Remove a tenant's data and evict its cached connection."""
        key = sanitize_tenant_id(tenant_id)
        # Release our own sessions before the namespace is dropped
        await self._cache.invalidate(key)
        await self._strategy.delete_tenant(key)
        await self._cache.invalidate(key)
        logger.info(f"Deleted tenant {key}")

    async def migrate_tenant(self, tenant_id: str) -> None:
        key = sanitize_tenant_id(tenant_id)
        await self._strategy.migrate_tenant(key)

    async def list_tenants(self) -> List[str]:
        return await self._strategy.list_tenants()

    async def tenant_exists(self, tenant_id: str) -> bool:
        key = sanitize_tenant_id(tenant_id)
        return await self._strategy.tenant_exists(key)

    # Introspection

    def get_stats(self) -> TenantDbStats:
        snapshot = self._cache.snapshot()
        return TenantDbStats(
            cached_connections=snapshot.cached_connections,
            total_connections=snapshot.total_connections,
            strategy=self._descriptor.strategy.value,
            adapter=self._descriptor.adapter.value,
            connection_counts=snapshot.connection_counts,
            cache_enabled=self._cache.enabled,
            ttl_seconds=self._cache.ttl_seconds,
        )

    def get_adapter(self) -> BaseAdapter:
        return self._adapter

    def get_strategy(self) -> BaseStrategy:
        return self._strategy

    def get_config(self) -> Dict[str, Any]:
        """Settings with credentials masked."""
        return self._settings.safe_dump()

    async def clear_cache(self) -> int:
        """Close every cached connection without shutting down."""
        return await self._cache.clear()

    async def health_check(self) -> bool:
        """Check tenants can be enumerated through the administrative handle."""
        if self._closed:
            return False
        try:
            await self._strategy.list_tenants()
            return True
        except Exception as e:
            logger.warning(f"Tenant database health check failed: {e}")
            return False

    # Shutdown

    async def disconnect(self) -> None:
        """Close every connection and administrative handle. Idempotent."""
        async with self._disconnect_lock:
            if self._closed:
                return
            self._closed = True
            self.remove_signal_handlers()
            await self._cache.close()
            await self._strategy.close()
            logger.info("Tenant registry disconnected")

    def install_signal_handlers(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        signals: tuple = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        """Disconnect on SIGINT/SIGTERM.

        Only works on loops that support ``add_signal_handler`` (not Windows).
        """
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(sig, lambda s=sig: asyncio.ensure_future(self._on_signal(s)))
        self._signal_loop = loop
        self._signals = list(signals)

    def remove_signal_handlers(self) -> None:
        if self._signal_loop is None:
            return
        for sig in self._signals:
            self._signal_loop.remove_signal_handler(sig)
        self._signal_loop = None
        self._signals = []

    async def _on_signal(self, sig: int) -> None:
        logger.info(f"Received signal {signal.Signals(sig).name}, disconnecting tenant databases")
        await self.disconnect()

    def __repr__(self) -> str:
        return (
            f"TenantRegistry(strategy={self._descriptor.strategy.value}, "
            f"adapter={self._descriptor.adapter.value}, closed={self._closed})"
        )
