"""Tenant registry services."""

from .tenant_registry import TenantDbStats, TenantRegistry
from .factory import ADAPTERS, STRATEGIES, build_adapter, create_tenant_db

__all__ = [
    "TenantDbStats",
    "TenantRegistry",
    "ADAPTERS",
    "STRATEGIES",
    "build_adapter",
    "create_tenant_db",
]
