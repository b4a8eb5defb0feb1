"""Tenant-bound connection handles and row-level scoping."""

from .scoping import check_update_values, scope_filter, stamp_records
from .tenant_connection import RowScopedConnection, TenantConnection

__all__ = [
    "RowScopedConnection",
    "TenantConnection",
    "check_update_values",
    "scope_filter",
    "stamp_records",
]
