"""Utility modules for neo-tenantdb."""

from .validation import validate_pool_configuration
from .sanitize import (
    sanitize_tenant_id,
    is_safe_tenant_id,
    validate_identifier,
    quote_identifier,
)
from .error_handling import TenantOperationContext

__all__ = [
    "validate_pool_configuration",
    "sanitize_tenant_id",
    "is_safe_tenant_id",
    "validate_identifier",
    "quote_identifier",
    "TenantOperationContext",
]
