"""Row-level isolation: every tenant shares one namespace."""

import logging
from typing import Any, List, Optional

from ...config.constants import StrategyKind
from ...config.settings import TenantDbSettings
from ...core.exceptions import (
    ConfigurationError,
    TenantDeleteError,
    TenantOperationError,
    UnsupportedForStrategy,
)
from ...utils.error_handling import TenantOperationContext
from ..adapters.entities import ConnectionDescriptor, MigrationRunner
from ..adapters.repositories.base_adapter import BaseAdapter
from ..middleware.tenant_connection import TenantConnection
from .base_strategy import BaseStrategy, CreateTenantOptions

logger = logging.getLogger(__name__)


class RowLevelStrategy(BaseStrategy):
    """Tenants are distinguished by a tenant column in tracked collections.

    Tenants exist implicitly: one exists as soon as a tracked collection holds
    a row carrying its id. Deleting a tenant runs one transaction per tracked
    collection, so a failure part way leaves earlier collections purged.
    """

    kind = StrategyKind.ROW

    def __init__(
        self,
        adapter: BaseAdapter,
        settings: TenantDbSettings,
        migration_runner: Optional[MigrationRunner] = None,
    ):
        super().__init__(adapter, settings, migration_runner)
        self.tenant_field = settings.tenant_field
        self.tracked_collections: List[str] = list(
            settings.tracked_collections or adapter.default_tracked_collections(self.tenant_field)
        )
        if not self.tracked_collections:
            raise ConfigurationError(
                "Row-level isolation requires tracked_collections "
                f"(collections carrying the '{self.tenant_field}' field)",
                details={"strategy": self.kind.value},
            )

    def descriptor_for(self, tenant_id: str) -> ConnectionDescriptor:
        return ConnectionDescriptor(url=self.settings.url)

    def wrap(self, handle: Any, tenant_id: str, descriptor: ConnectionDescriptor) -> TenantConnection:
        return self.adapter.wrap_for_tenant(
            handle, tenant_id, descriptor=descriptor, tenant_field=self.tenant_field
        )

    async def create_tenant(self, tenant_id: str, options: CreateTenantOptions) -> None:
        if options.template:
            raise UnsupportedForStrategy(
                "create_tenant", "row-level isolation", "templates need a namespace per tenant", tenant_id
            )
        logger.debug(f"Row-level tenant {tenant_id} exists implicitly, nothing to provision")

    async def delete_tenant(self, tenant_id: str) -> None:
        handle = await self.admin_handle()
        total = 0
        for collection in self.tracked_collections:
            async with TenantOperationContext("delete tenant rows", tenant_id, TenantDeleteError) as ctx:
                ctx.add_context("collection", collection)
                async with self.adapter.transaction(handle) as tx:
                    deleted = await self.adapter.delete(tx, collection, {self.tenant_field: tenant_id})
            total += deleted
            logger.debug(f"Deleted {deleted} row(s) of tenant {tenant_id} from {collection}")
        logger.info(f"Deleted {total} row(s) for tenant {tenant_id}")

    async def list_tenants(self) -> List[str]:
        handle = await self.admin_handle()
        tenants = set()
        async with TenantOperationContext("list tenants", None, TenantOperationError):
            for collection in self.tracked_collections:
                values = await self.adapter.distinct(handle, collection, self.tenant_field)
                tenants.update(str(value) for value in values)
        return sorted(tenants)

    async def tenant_exists(self, tenant_id: str) -> bool:
        handle = await self.admin_handle()
        async with TenantOperationContext("check tenant exists", tenant_id, TenantOperationError):
            for collection in self.tracked_collections:
                if await self.adapter.count(handle, collection, {self.tenant_field: tenant_id}):
                    return True
        return False

    async def migrate_tenant(self, tenant_id: str) -> None:
        # The shared namespace is migrated once for every tenant
        logger.debug(f"Row-level tenant {tenant_id} shares its schema, no per-tenant migration")
