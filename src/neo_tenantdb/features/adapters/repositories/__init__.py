"""Adapter implementations."""

from .base_adapter import BaseAdapter
from .asyncpg_adapter import AsyncpgAdapter
from .sqlalchemy_adapter import (
    OrmHandle,
    SqlAlchemyCoreAdapter,
    SqlAlchemyOrmAdapter,
    compile_sqlalchemy_filter,
)
from .motor_adapter import MotorAdapter

__all__ = [
    "BaseAdapter",
    "AsyncpgAdapter",
    "OrmHandle",
    "SqlAlchemyCoreAdapter",
    "SqlAlchemyOrmAdapter",
    "compile_sqlalchemy_filter",
    "MotorAdapter",
]
