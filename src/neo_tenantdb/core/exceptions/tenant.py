"""Tenant data-access exceptions for neo-tenantdb."""

from typing import Optional

from .base import NeoTenantDbError


class ConfigurationError(NeoTenantDbError):
    """Raised at startup when the strategy/adapter configuration is invalid."""
    pass


class InvalidTenantId(NeoTenantDbError):
    """Raised when a tenant identifier is empty or cannot be made safe."""

    def __init__(self, tenant_id: object, reason: str = ""):
        self.raw_tenant_id = tenant_id
        self.reason = reason
        message = f"Invalid tenant id {tenant_id!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message, tenant_id=None if tenant_id is None else str(tenant_id))


class UnsupportedOperationError(NeoTenantDbError):
    """Base class for operations that are not meaningful in this configuration."""

    def __init__(self, operation: str, target: str, reason: str = "", tenant_id: Optional[str] = None):
        self.target = target
        self.reason = reason
        message = f"Operation '{operation}' is not supported by {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message, tenant_id=tenant_id, operation=operation)


class UnsupportedForStrategy(UnsupportedOperationError):
    """Raised when the isolation strategy has no meaning for an operation."""
    pass


class UnsupportedForAdapter(UnsupportedOperationError):
    """Raised when the backend family has no concept needed by an operation."""
    pass


class TenantAlreadyExists(NeoTenantDbError):
    """Raised when creating a tenant that already exists."""

    def __init__(self, tenant_id: str):
        super().__init__(
            f"Tenant '{tenant_id}' already exists",
            tenant_id=tenant_id,
            operation="create_tenant",
        )


class TenantNotFound(NeoTenantDbError):
    """Raised when a lifecycle operation targets a tenant that does not exist."""

    def __init__(self, tenant_id: str, operation: str):
        super().__init__(
            f"Tenant '{tenant_id}' not found during {operation}",
            tenant_id=tenant_id,
            operation=operation,
        )


class TenantOperationError(NeoTenantDbError):
    """Base class for backend-reported failures on behalf of a tenant.

    The backend exception is kept as ``__cause__`` and summarized in
    ``details['cause']``.
    """

    def __init__(self, tenant_id: Optional[str], operation: str, error: object = None):
        self.error = error
        subject = f"tenant '{tenant_id}'" if tenant_id else "tenant registry"
        message = f"Failed to {operation} for {subject}"
        if error is not None:
            message += f": {error}"
        details = {"cause": type(error).__name__} if isinstance(error, BaseException) else None
        super().__init__(message, details=details, tenant_id=tenant_id, operation=operation)


class TenantConnectError(TenantOperationError):
    """Raised when a tenant connection cannot be established or is closed."""
    pass


class TenantCreateError(TenantOperationError):
    """Raised when provisioning a tenant namespace fails."""
    pass


class TenantDeleteError(TenantOperationError):
    """Raised when removing a tenant's namespace or rows fails."""
    pass


class TenantQueryError(TenantOperationError):
    """Raised when a tenant-scoped data operation fails or is rejected."""
    pass


class TenantMigrationError(TenantOperationError):
    """Raised when tenant migrations cannot run."""
    pass
