"""Backend adapters.

Adapters translate record operations and namespace management into one
backend family: asyncpg, SQLAlchemy Core, SQLAlchemy ORM or Motor.
"""

from .entities import ConnectionDescriptor, MigrationRunner
from .repositories import (
    AsyncpgAdapter,
    BaseAdapter,
    MotorAdapter,
    OrmHandle,
    SqlAlchemyCoreAdapter,
    SqlAlchemyOrmAdapter,
)

__all__ = [
    "ConnectionDescriptor",
    "MigrationRunner",
    "AsyncpgAdapter",
    "BaseAdapter",
    "MotorAdapter",
    "OrmHandle",
    "SqlAlchemyCoreAdapter",
    "SqlAlchemyOrmAdapter",
]
