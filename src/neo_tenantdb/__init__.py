"""Neo-TenantDB - multi-tenant data access for asyncio applications.

Routes each tenant to an isolated connection (row-level, schema-per-tenant
or database-per-tenant), caches connections per tenant with a TTL, and
manages the tenant lifecycle through a single registry.

Logging is left to the application; call :func:`setup_logging` to use the
bundled configuration.
"""

from .__version__ import __version__

from .config import (
    AdapterKind,
    NamespaceKind,
    StrategyKind,
    TenantDbSettings,
    setup_logging,
)

from .core.exceptions import (
    # Base Exception
    NeoTenantDbError,

    # Startup and input errors
    ConfigurationError,
    InvalidTenantId,
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

    # Utility Functions
    get_http_status_code,
    create_error_response,
)

from .features.adapters import (
    AsyncpgAdapter,
    BaseAdapter,
    ConnectionDescriptor,
    MigrationRunner,
    MotorAdapter,
    SqlAlchemyCoreAdapter,
    SqlAlchemyOrmAdapter,
)
from .features.middleware import RowScopedConnection, TenantConnection, scope_filter
from .features.strategies import BaseStrategy, DatabaseStrategy, RowLevelStrategy, SchemaStrategy
from .features.cache import ConnectionCache

from .services import TenantDbStats, TenantRegistry, create_tenant_db

from .infrastructure import TenantContext, current_connection, current_tenant_id

from .utils import sanitize_tenant_id

__all__ = [
    "__version__",
    # Configuration
    "AdapterKind",
    "NamespaceKind",
    "StrategyKind",
    "TenantDbSettings",
    "setup_logging",
    # Exceptions
    "NeoTenantDbError",
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
    "get_http_status_code",
    "create_error_response",
    # Adapters
    "AsyncpgAdapter",
    "BaseAdapter",
    "ConnectionDescriptor",
    "MigrationRunner",
    "MotorAdapter",
    "SqlAlchemyCoreAdapter",
    "SqlAlchemyOrmAdapter",
    # Connections
    "RowScopedConnection",
    "TenantConnection",
    "scope_filter",
    # Strategies
    "BaseStrategy",
    "DatabaseStrategy",
    "RowLevelStrategy",
    "SchemaStrategy",
    # Cache
    "ConnectionCache",
    # Registry
    "TenantDbStats",
    "TenantRegistry",
    "create_tenant_db",
    # Context
    "TenantContext",
    "current_connection",
    "current_tenant_id",
    # Utilities
    "sanitize_tenant_id",
]
