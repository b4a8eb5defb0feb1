"""Isolation strategy contract.

A strategy decides where a tenant's data lives: rows in a shared namespace,
a schema per tenant, or a database per tenant. It builds connection
descriptors, provisions and removes namespaces through an administrative
handle, and enumerates tenants. Tenant ids arrive already sanitized.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from ...config.constants import StrategyKind
from ...config.settings import TenantDbSettings
from ...core.exceptions import TenantConnectError, TenantMigrationError
from ...utils.error_handling import TenantOperationContext
from ..adapters.entities import ConnectionDescriptor, MigrationRunner
from ..adapters.repositories.base_adapter import BaseAdapter
from ..middleware.tenant_connection import TenantConnection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateTenantOptions:
    """Per-call options for tenant provisioning.

    Attributes:
        template: Existing namespace whose structure is copied (schema strategy)
        run_migrations: Override for ``run_migrations_on_create``
    """

    template: Optional[str] = None
    run_migrations: Optional[bool] = None


class BaseStrategy(ABC):
    """Base class for isolation strategies."""

    kind: StrategyKind

    def __init__(
        self,
        adapter: BaseAdapter,
        settings: TenantDbSettings,
        migration_runner: Optional[MigrationRunner] = None,
    ):
        self.adapter = adapter
        self.settings = settings
        self.migration_runner = migration_runner
        self._admin_handle: Any = None
        self._admin_lock = asyncio.Lock()

    # Descriptors and connections

    @abstractmethod
    def descriptor_for(self, tenant_id: str) -> ConnectionDescriptor:
        """Descriptor pointing at the tenant's data."""
        pass

    def admin_descriptor(self) -> ConnectionDescriptor:
        """Descriptor for namespace management and tenant enumeration."""
        return ConnectionDescriptor(url=self.settings.url)

    def wrap(self, handle: Any, tenant_id: str, descriptor: ConnectionDescriptor) -> TenantConnection:
        return self.adapter.wrap_for_tenant(handle, tenant_id, descriptor=descriptor)

    async def get_connection(self, tenant_id: str) -> TenantConnection:
        """Open a new tenant-bound connection."""
        descriptor = self.descriptor_for(tenant_id)
        async with TenantOperationContext("connect", tenant_id, TenantConnectError):
            handle = await self.adapter.connect(descriptor)
        return self.wrap(handle, tenant_id, descriptor)

    async def admin_handle(self) -> Any:
        """Lazily open the shared administrative handle."""
        if self._admin_handle is None:
            async with self._admin_lock:
                if self._admin_handle is None:  # Double-check
                    async with TenantOperationContext("connect admin handle", None, TenantConnectError):
                        self._admin_handle = await self.adapter.connect(self.admin_descriptor())
        return self._admin_handle

    # Lifecycle

    @abstractmethod
    async def create_tenant(self, tenant_id: str, options: CreateTenantOptions) -> None:
        pass

    @abstractmethod
    async def delete_tenant(self, tenant_id: str) -> None:
        pass

    @abstractmethod
    async def list_tenants(self) -> List[str]:
        pass

    async def tenant_exists(self, tenant_id: str) -> bool:
        return tenant_id in await self.list_tenants()

    async def migrate_tenant(self, tenant_id: str) -> None:
        await self._run_migrations(tenant_id, required=True)

    async def _run_migrations(self, tenant_id: str, required: bool) -> None:
        if self.migration_runner is None:
            if required:
                raise TenantMigrationError(tenant_id, "migrate tenant", "no migration runner configured")
            logger.debug(f"No migration runner configured, skipping migrations for tenant {tenant_id}")
            return

        descriptor = self.descriptor_for(tenant_id)
        async with TenantOperationContext("migrate tenant", tenant_id, TenantMigrationError, log_level=logging.INFO):
            await self.migration_runner.run_migrations(descriptor)

    async def _provisioning_migrations(self, tenant_id: str, options: CreateTenantOptions) -> None:
        if options.run_migrations is None:
            if self.settings.run_migrations_on_create:
                await self._run_migrations(tenant_id, required=False)
        elif options.run_migrations:
            await self._run_migrations(tenant_id, required=True)

    async def close(self) -> None:
        """Release the administrative handle."""
        async with self._admin_lock:
            handle, self._admin_handle = self._admin_handle, None
        if handle is not None:
            async with TenantOperationContext("disconnect admin handle", None, TenantConnectError):
                await self.adapter.disconnect(handle)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(adapter={self.adapter.kind.value})"
