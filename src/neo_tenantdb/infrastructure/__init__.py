"""Integration of tenant connections with the surrounding application."""

from .context import (
    TenantContext,
    bind_tenant,
    current_connection,
    current_tenant_id,
    require_connection,
)

__all__ = [
    "TenantContext",
    "bind_tenant",
    "current_connection",
    "current_tenant_id",
    "require_connection",
]
