"""Isolation strategies."""

from .base_strategy import BaseStrategy, CreateTenantOptions
from .row_strategy import RowLevelStrategy
from .schema_strategy import SchemaStrategy, is_reserved_schema
from .database_strategy import DatabaseStrategy

__all__ = [
    "BaseStrategy",
    "CreateTenantOptions",
    "RowLevelStrategy",
    "SchemaStrategy",
    "DatabaseStrategy",
    "is_reserved_schema",
]
