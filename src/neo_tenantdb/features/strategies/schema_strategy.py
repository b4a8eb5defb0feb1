"""Schema-per-tenant isolation inside one shared database."""

import logging
import re
from typing import List, Optional

from ...config.constants import NamespaceKind, ReservedNamespaces, StrategyKind, TenantIdRules
from ...config.settings import TenantDbSettings
from ...core.exceptions import (
    ConfigurationError,
    InvalidTenantId,
    TenantCreateError,
    TenantDeleteError,
    TenantNotFound,
    TenantOperationError,
)
from ...utils.error_handling import TenantOperationContext
from ...utils.sanitize import sanitize_tenant_id
from ..adapters.entities import ConnectionDescriptor, MigrationRunner
from ..adapters.repositories.base_adapter import BaseAdapter
from .base_strategy import BaseStrategy, CreateTenantOptions

logger = logging.getLogger(__name__)

_PREFIX_PATTERN = re.compile(r"^[a-z0-9_]*$")


def is_reserved_schema(name: str) -> bool:
    return name in ReservedNamespaces.POSTGRES_SCHEMAS or name.startswith(
        ReservedNamespaces.POSTGRES_SCHEMA_PREFIX
    )


class SchemaStrategy(BaseStrategy):
    """Each tenant owns the schema ``namespace_prefix + tenant_id``."""

    kind = StrategyKind.SCHEMA

    def __init__(
        self,
        adapter: BaseAdapter,
        settings: TenantDbSettings,
        migration_runner: Optional[MigrationRunner] = None,
    ):
        super().__init__(adapter, settings, migration_runner)
        if not adapter.supports_namespace(NamespaceKind.SCHEMA, settings.url):
            raise ConfigurationError(
                f"Schema isolation is not available with adapter '{adapter.kind.value}'",
                details={"strategy": self.kind.value, "adapter": adapter.kind.value},
            )
        self.prefix = settings.namespace_prefix
        if not _PREFIX_PATTERN.match(self.prefix):
            raise ConfigurationError(
                f"Invalid namespace prefix: {self.prefix!r}",
                details={"namespace_prefix": self.prefix},
            )

    def schema_name(self, tenant_id: str) -> str:
        name = f"{self.prefix}{tenant_id}"
        if len(name) > TenantIdRules.MAX_LENGTH:
            raise InvalidTenantId(tenant_id, f"schema name exceeds {TenantIdRules.MAX_LENGTH} characters")
        return name

    def descriptor_for(self, tenant_id: str) -> ConnectionDescriptor:
        return ConnectionDescriptor(url=self.settings.url, schema=self.schema_name(tenant_id))

    async def create_tenant(self, tenant_id: str, options: CreateTenantOptions) -> None:
        name = self.schema_name(tenant_id)
        template = sanitize_tenant_id(options.template) if options.template else None
        handle = await self.admin_handle()

        async with TenantOperationContext("create tenant", tenant_id, TenantCreateError, log_level=logging.INFO) as ctx:
            ctx.add_context("schema", name)
            await self.adapter.create_namespace(handle, NamespaceKind.SCHEMA, name)
            if template:
                ctx.add_context("template", template)
                await self.adapter.clone_namespace(handle, template, name)

        await self._provisioning_migrations(tenant_id, options)
        logger.info(f"Created schema {name} for tenant {tenant_id}")

    async def delete_tenant(self, tenant_id: str) -> None:
        if not await self.tenant_exists(tenant_id):
            raise TenantNotFound(tenant_id, "delete_tenant")

        name = self.schema_name(tenant_id)
        handle = await self.admin_handle()
        async with TenantOperationContext("delete tenant", tenant_id, TenantDeleteError, log_level=logging.INFO):
            await self.adapter.drop_namespace(handle, NamespaceKind.SCHEMA, name)
        logger.info(f"Dropped schema {name} for tenant {tenant_id}")

    async def list_tenants(self) -> List[str]:
        handle = await self.admin_handle()
        async with TenantOperationContext("list tenants", None, TenantOperationError):
            names = await self.adapter.list_namespaces(handle, NamespaceKind.SCHEMA)

        tenants = []
        for name in names:
            if is_reserved_schema(name) or not name.startswith(self.prefix):
                continue
            tenant_id = name[len(self.prefix):]
            if tenant_id:
                tenants.append(tenant_id)
        return sorted(tenants)
