"""Configuration for neo-tenantdb."""

from .constants import (
    AdapterKind,
    CacheDefaults,
    DEFAULT_TENANT_FIELD,
    NamespaceKind,
    ReservedNamespaces,
    StrategyKind,
    TENANT_PLACEHOLDER,
    TenantIdRules,
)
from .settings import IsolationDescriptor, TenantDbSettings
from .logging_config import LoggingConfig, get_logger, setup_logging

__all__ = [
    "AdapterKind",
    "CacheDefaults",
    "DEFAULT_TENANT_FIELD",
    "NamespaceKind",
    "ReservedNamespaces",
    "StrategyKind",
    "TENANT_PLACEHOLDER",
    "TenantIdRules",
    "IsolationDescriptor",
    "TenantDbSettings",
    "LoggingConfig",
    "get_logger",
    "setup_logging",
]
