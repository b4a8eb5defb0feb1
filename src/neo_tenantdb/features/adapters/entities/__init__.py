"""Adapter domain objects and protocols."""

from .descriptor import ConnectionDescriptor
from .protocols import FilterTree, MigrationRunner, OrderBy, QueryContract, Record

__all__ = [
    "ConnectionDescriptor",
    "FilterTree",
    "MigrationRunner",
    "OrderBy",
    "QueryContract",
    "Record",
]
