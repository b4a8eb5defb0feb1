"""FastAPI integration."""

from .dependencies import get_tenant_db, get_tenant_id, tenantdb_lifespan
from .middleware import DEFAULT_EXEMPT_PATHS, TenantDatabaseMiddleware

__all__ = [
    "DEFAULT_EXEMPT_PATHS",
    "TenantDatabaseMiddleware",
    "get_tenant_db",
    "get_tenant_id",
    "tenantdb_lifespan",
]
