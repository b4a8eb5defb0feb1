"""Adapter utility modules."""

from .filters import (
    AND,
    NOT,
    OR,
    LOGICAL_KEYS,
    OPERATORS,
    compile_mongo_filter,
    compile_sql_filter,
    filter_fields,
    is_operator_map,
    parse_order_by,
)
from .queries import quote_catalog_name, returns_rows

__all__ = [
    "AND",
    "NOT",
    "OR",
    "LOGICAL_KEYS",
    "OPERATORS",
    "compile_mongo_filter",
    "compile_sql_filter",
    "filter_fields",
    "is_operator_map",
    "parse_order_by",
    "quote_catalog_name",
    "returns_rows",
]
