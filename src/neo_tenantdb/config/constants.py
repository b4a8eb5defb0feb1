"""Constants and enums for neo-tenantdb.

The strategy and adapter kinds are closed enums: the registry factory maps
each member to exactly one implementation class, once, at startup.
"""

from enum import Enum
from typing import Final, FrozenSet


class StrategyKind(str, Enum):
    """Isolation model shared by every tenant in the process."""

    ROW = "row"
    SCHEMA = "schema"
    DATABASE = "database"


class AdapterKind(str, Enum):
    """Backend family the adapter drives."""

    ASYNCPG = "asyncpg"
    SQLALCHEMY = "sqlalchemy"
    SQLALCHEMY_ORM = "sqlalchemy_orm"
    MOTOR = "motor"


class NamespaceKind(str, Enum):
    """Backend-level container that can be created and dropped as a unit."""

    DATABASE = "database"
    SCHEMA = "schema"


class CacheDefaults:
    """Connection cache defaults in seconds."""

    TTL_SECONDS: Final[int] = 300            # 5 minutes
    SHUTDOWN_GRACE_SECONDS: Final[float] = 5.0


class TenantIdRules:
    """Tenant identifier normalization rules."""

    UNSAFE_CHARS_PATTERN: Final[str] = r"[^a-z0-9_-]"
    SAFE_PATTERN: Final[str] = r"^[a-z0-9_-]+$"
    REPLACEMENT: Final[str] = "_"
    MAX_LENGTH: Final[int] = 63              # PostgreSQL identifier limit


TENANT_PLACEHOLDER: Final[str] = "{tenant}"
DEFAULT_TENANT_FIELD: Final[str] = "tenant_id"


class ReservedNamespaces:
    """Namespaces that never represent a tenant."""

    POSTGRES_SCHEMAS: FrozenSet[str] = frozenset({
        "public",
        "information_schema",
        "pg_catalog",
        "pg_toast",
    })
    POSTGRES_SCHEMA_PREFIX: Final[str] = "pg_"
    POSTGRES_DATABASES: FrozenSet[str] = frozenset({
        "postgres",
        "template0",
        "template1",
    })
    MONGO_DATABASES: FrozenSet[str] = frozenset({
        "admin",
        "config",
        "local",
    })
