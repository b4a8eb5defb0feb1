"""Exceptions module for neo-tenantdb.

This module provides the complete exception hierarchy for neo-tenantdb.
"""

from .base import (
    NeoTenantDbError,
    get_http_status_code,
    create_error_response,
)

from .tenant import (
    ConfigurationError,
    InvalidTenantId,

    # Unsupported operations
    UnsupportedOperationError,
    UnsupportedForStrategy,
    UnsupportedForAdapter,

    # Lifecycle preconditions
    TenantAlreadyExists,
    TenantNotFound,

    # Backend failures
    TenantOperationError,
    TenantConnectError,
    TenantCreateError,
    TenantDeleteError,
    TenantQueryError,
    TenantMigrationError,
)

__all__ = [
    "NeoTenantDbError",
    "get_http_status_code",
    "create_error_response",
    "ConfigurationError",
    "InvalidTenantId",
    "UnsupportedOperationError",
    "UnsupportedForStrategy",
    "UnsupportedForAdapter",
    "TenantAlreadyExists",
    "TenantNotFound",
    "TenantOperationError",
    "TenantConnectError",
    "TenantCreateError",
    "TenantDeleteError",
    "TenantQueryError",
    "TenantMigrationError",
]
