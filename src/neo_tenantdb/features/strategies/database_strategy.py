"""Database-per-tenant isolation."""

import logging
import re
from typing import List, Optional

from ...config.constants import NamespaceKind, StrategyKind, TENANT_PLACEHOLDER, TenantIdRules
from ...config.settings import TenantDbSettings
from ...core.exceptions import (
    ConfigurationError,
    InvalidTenantId,
    TenantCreateError,
    TenantDeleteError,
    TenantNotFound,
    TenantOperationError,
    UnsupportedForStrategy,
)
from ...utils.error_handling import TenantOperationContext
from ..adapters.entities import ConnectionDescriptor, MigrationRunner
from ..adapters.repositories.base_adapter import BaseAdapter
from .base_strategy import BaseStrategy, CreateTenantOptions

logger = logging.getLogger(__name__)

_PREFIX_PATTERN = re.compile(r"^[a-z0-9_]*$")


class DatabaseStrategy(BaseStrategy):
    """Each tenant owns a database named by substituting ``{tenant}`` into the URL.

    Namespace management goes through the adapter's system database, the
    same template with the placeholder replaced by ``postgres`` or ``admin``.
    """

    kind = StrategyKind.DATABASE

    def __init__(
        self,
        adapter: BaseAdapter,
        settings: TenantDbSettings,
        migration_runner: Optional[MigrationRunner] = None,
    ):
        super().__init__(adapter, settings, migration_runner)
        occurrences = settings.url.count(TENANT_PLACEHOLDER)
        if occurrences != 1:
            raise ConfigurationError(
                f"Database isolation needs exactly one {TENANT_PLACEHOLDER} placeholder "
                f"in the URL, found {occurrences}",
                details={"strategy": self.kind.value},
            )
        self.prefix = settings.namespace_prefix
        if not _PREFIX_PATTERN.match(self.prefix):
            raise ConfigurationError(
                f"Invalid namespace prefix: {self.prefix!r}",
                details={"namespace_prefix": self.prefix},
            )
        if not adapter.supports_namespace(NamespaceKind.DATABASE, self._url_for(adapter.system_database)):
            raise ConfigurationError(
                f"Database isolation is not available with adapter '{adapter.kind.value}'",
                details={"strategy": self.kind.value, "adapter": adapter.kind.value},
            )

    def _url_for(self, database: str) -> str:
        return self.settings.url.replace(TENANT_PLACEHOLDER, database)

    def database_name(self, tenant_id: str) -> str:
        name = f"{self.prefix}{tenant_id}"
        if len(name) > TenantIdRules.MAX_LENGTH:
            raise InvalidTenantId(tenant_id, f"database name exceeds {TenantIdRules.MAX_LENGTH} characters")
        return name

    def descriptor_for(self, tenant_id: str) -> ConnectionDescriptor:
        name = self.database_name(tenant_id)
        return ConnectionDescriptor(url=self._url_for(name), database=name)

    def admin_descriptor(self) -> ConnectionDescriptor:
        system = self.adapter.system_database
        return ConnectionDescriptor(url=self._url_for(system), database=system)

    def _is_reserved(self, name: str) -> bool:
        return name in self.adapter.reserved_databases or name == self.adapter.system_database

    async def create_tenant(self, tenant_id: str, options: CreateTenantOptions) -> None:
        if options.template:
            raise UnsupportedForStrategy(
                "create_tenant", "database isolation", "templates are only cloned between schemas", tenant_id
            )
        name = self.database_name(tenant_id)
        if self._is_reserved(name):
            raise InvalidTenantId(tenant_id, f"{name} is a reserved database")

        handle = await self.admin_handle()
        async with TenantOperationContext("create tenant", tenant_id, TenantCreateError, log_level=logging.INFO) as ctx:
            ctx.add_context("database", name)
            await self.adapter.create_namespace(handle, NamespaceKind.DATABASE, name)

        await self._provisioning_migrations(tenant_id, options)
        logger.info(f"Created database {name} for tenant {tenant_id}")

    async def delete_tenant(self, tenant_id: str) -> None:
        if not await self.tenant_exists(tenant_id):
            raise TenantNotFound(tenant_id, "delete_tenant")

        name = self.database_name(tenant_id)
        handle = await self.admin_handle()
        async with TenantOperationContext("delete tenant", tenant_id, TenantDeleteError, log_level=logging.INFO):
            await self.adapter.terminate_sessions(handle, name)
            await self.adapter.drop_namespace(handle, NamespaceKind.DATABASE, name)
        logger.info(f"Dropped database {name} for tenant {tenant_id}")

    async def list_tenants(self) -> List[str]:
        handle = await self.admin_handle()
        async with TenantOperationContext("list tenants", None, TenantOperationError):
            names = await self.adapter.list_namespaces(handle, NamespaceKind.DATABASE)

        tenants = []
        for name in names:
            if self._is_reserved(name) or not name.startswith(self.prefix):
                continue
            tenant_id = name[len(self.prefix):]
            if tenant_id:
                tenants.append(tenant_id)
        return sorted(tenants)
