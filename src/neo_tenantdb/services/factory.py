"""Registry factory.

The configured strategy and adapter names are resolved into concrete
classes here, once. Nothing downstream dispatches on names again.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Type

from pydantic import ValidationError

from ..config.constants import AdapterKind, StrategyKind
from ..config.settings import TenantDbSettings
from ..core.exceptions import ConfigurationError
from ..features.adapters.entities import MigrationRunner
from ..features.adapters.repositories import (
    AsyncpgAdapter,
    BaseAdapter,
    MotorAdapter,
    SqlAlchemyCoreAdapter,
    SqlAlchemyOrmAdapter,
)
from ..features.cache import ConnectionCache
from ..features.strategies import BaseStrategy, DatabaseStrategy, RowLevelStrategy, SchemaStrategy
from .tenant_registry import TenantRegistry

logger = logging.getLogger(__name__)

STRATEGIES: Dict[StrategyKind, Type[BaseStrategy]] = {
    StrategyKind.ROW: RowLevelStrategy,
    StrategyKind.SCHEMA: SchemaStrategy,
    StrategyKind.DATABASE: DatabaseStrategy,
}

ADAPTERS: Dict[AdapterKind, Type[BaseAdapter]] = {
    AdapterKind.ASYNCPG: AsyncpgAdapter,
    AdapterKind.SQLALCHEMY: SqlAlchemyCoreAdapter,
    AdapterKind.SQLALCHEMY_ORM: SqlAlchemyOrmAdapter,
    AdapterKind.MOTOR: MotorAdapter,
}


def _load_settings(settings: Optional[TenantDbSettings], overrides: Dict[str, Any]) -> TenantDbSettings:
    try:
        if settings is None:
            return TenantDbSettings(**overrides)
        if overrides:
            return TenantDbSettings(**{**settings.model_dump(), **overrides})
        return settings
    except ValidationError as e:
        raise ConfigurationError(f"Invalid tenant database settings: {e}") from e


def build_adapter(
    kind: AdapterKind,
    settings: TenantDbSettings,
    metadata: Any = None,
    declarative_base: Any = None,
) -> BaseAdapter:
    """Instantiate the adapter for ``kind`` from settings."""
    common = {
        "pool_min_size": settings.pool_min_size,
        "pool_max_size": settings.pool_max_size,
        "connect_timeout": settings.connect_timeout_seconds,
        "driver_options": settings.driver_options,
    }
    adapter_cls = ADAPTERS[kind]

    if kind == AdapterKind.SQLALCHEMY:
        return adapter_cls(metadata=metadata, **common)
    if kind == AdapterKind.SQLALCHEMY_ORM:
        if declarative_base is None:
            raise ConfigurationError(
                "The sqlalchemy_orm adapter requires a declarative_base",
                details={"adapter": kind.value},
            )
        return adapter_cls(declarative_base=declarative_base, **common)
    return adapter_cls(**common)


def create_tenant_db(
    settings: Optional[TenantDbSettings] = None,
    *,
    migration_runner: Optional[MigrationRunner] = None,
    metadata: Any = None,
    declarative_base: Any = None,
    adapter_instance: Optional[BaseAdapter] = None,
    clock: Optional[Callable[[], float]] = None,
    **overrides: Any,
) -> TenantRegistry:
    """Build a tenant registry.

    Args:
        settings: Explicit settings; otherwise built from ``overrides`` and
            ``TENANTDB_*`` environment variables
        migration_runner: Object with ``async run_migrations(descriptor)``
        metadata: SQLAlchemy ``MetaData`` for the Core adapter
        declarative_base: Declarative base for the ORM adapter
        adapter_instance: Pre-built adapter replacing the one named by the
            ``adapter`` setting
        clock: Monotonic clock used for connection TTLs
        **overrides: Individual settings fields

    Raises:
        ConfigurationError: If the settings or the strategy/adapter pair are invalid
    """
    settings = _load_settings(settings, overrides)
    descriptor = settings.resolve_descriptor()

    adapter = adapter_instance
    if adapter is None:
        adapter = build_adapter(descriptor.adapter, settings, metadata, declarative_base)
    strategy = STRATEGIES[descriptor.strategy](adapter, settings, migration_runner=migration_runner)

    cache = ConnectionCache(
        ttl_seconds=settings.cache_ttl_seconds,
        sweep_interval_seconds=settings.effective_sweep_interval,
        enabled=settings.cache_enabled,
        clock=clock or time.monotonic,
    )

    logger.info(
        f"Created tenant registry: strategy={descriptor.strategy.value}, "
        f"adapter={descriptor.adapter.value}, cache={'on' if cache.enabled else 'off'}"
    )
    return TenantRegistry(settings, descriptor, adapter, strategy, cache)
