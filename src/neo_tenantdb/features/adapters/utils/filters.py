"""Filter tree compilation.

Filters are plain mappings so that every adapter, and the row-level scoping
layer, can reason about them without a query builder:

    {"status": "active"}                          equality
    {"deleted_at": None}                          IS NULL
    {"plan": ["pro", "team"]}                     IN
    {"age": {"gte": 18, "lt": 65}}                comparison operators
    {"OR": [{"a": 1}, {"b": 2}]}                  disjunction
    {"AND": [...]}, {"NOT": {...}}                conjunction, negation

Sibling keys in one mapping are combined with AND. The SQLAlchemy compiler
lives with the SQLAlchemy adapter; this module stays free of driver imports.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ....utils.sanitize import quote_identifier, validate_identifier

AND = "AND"
OR = "OR"
NOT = "NOT"
LOGICAL_KEYS = frozenset({AND, OR, NOT})
OPERATORS = frozenset({"eq", "ne", "gt", "gte", "lt", "lte", "in"})

_SQL_OPERATORS = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}
_MONGO_OPERATORS = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
}


def is_operator_map(value: Any) -> bool:
    """Whether a condition value is an operator mapping like ``{"gt": 1}``."""
    return isinstance(value, Mapping) and bool(value) and set(value).issubset(OPERATORS)


def _check_tree(where: Any) -> Mapping[str, Any]:
    if not isinstance(where, Mapping):
        raise ValueError(f"Filter must be a mapping, got {type(where).__name__}")
    return where


def _check_branches(key: str, value: Any) -> Sequence[Mapping[str, Any]]:
    if isinstance(value, Mapping) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{key} expects a list of filters")
    return value


def _check_condition(field: str, value: Any) -> None:
    if isinstance(value, Mapping) and not is_operator_map(value):
        unknown = sorted(set(value) - OPERATORS) or ["<empty>"]
        raise ValueError(f"Unknown filter operator(s) for {field!r}: {', '.join(unknown)}")


def filter_fields(where: Optional[Mapping[str, Any]]) -> Set[str]:
    """Collect every field name referenced anywhere in a filter tree."""
    fields: Set[str] = set()
    if not where:
        return fields
    for key, value in _check_tree(where).items():
        if key in (AND, OR):
            for branch in _check_branches(key, value):
                fields |= filter_fields(branch)
        elif key == NOT:
            fields |= filter_fields(value)
        else:
            fields.add(key)
    return fields


def parse_order_by(order_by: Any) -> List[Tuple[str, bool]]:
    """Normalize ``"name"``, ``"-created_at"`` or a list of them.

    Returns:
        ``(field, descending)`` pairs
    """
    if not order_by:
        return []
    items = [order_by] if isinstance(order_by, str) else list(order_by)
    parsed = []
    for item in items:
        descending = item.startswith("-")
        parsed.append((item[1:] if descending else item, descending))
    return parsed


# SQL with positional placeholders

def _sql_condition(
    field: str,
    value: Any,
    params: List[Any],
    placeholder: Callable[[int], str],
) -> str:
    column = quote_identifier(validate_identifier(field, "field"))

    def bind(param: Any) -> str:
        params.append(param)
        return placeholder(len(params))

    if value is None:
        return f"{column} IS NULL"
    if isinstance(value, (list, tuple, set, frozenset)):
        values = list(value)
        return f"{column} = ANY({bind(values)})" if values else "FALSE"

    if isinstance(value, Mapping):
        _check_condition(field, value)
        clauses = []
        for op, operand in value.items():
            if op == "eq":
                clauses.append(f"{column} IS NULL" if operand is None else f"{column} = {bind(operand)}")
            elif op == "ne":
                clauses.append(
                    f"{column} IS NOT NULL" if operand is None else f"{column} IS DISTINCT FROM {bind(operand)}"
                )
            elif op == "in":
                values = list(operand)
                clauses.append(f"{column} = ANY({bind(values)})" if values else "FALSE")
            else:
                clauses.append(f"{column} {_SQL_OPERATORS[op]} {bind(operand)}")
        return " AND ".join(clauses)

    return f"{column} = {bind(value)}"


def compile_sql_filter(
    where: Optional[Mapping[str, Any]],
    params: List[Any],
    placeholder: Callable[[int], str] = lambda index: f"${index}",
) -> str:
    """Compile a filter tree into a SQL boolean expression.

    Bound values are appended to ``params``; ``placeholder`` renders the
    1-based parameter index (``$1`` for asyncpg).
    """
    if not where:
        return "TRUE"

    parts = []
    for key, value in _check_tree(where).items():
        if key == AND:
            branches = [compile_sql_filter(b, params, placeholder) for b in _check_branches(key, value)]
            parts.append(" AND ".join(f"({b})" for b in branches) if branches else "TRUE")
        elif key == OR:
            branches = [compile_sql_filter(b, params, placeholder) for b in _check_branches(key, value)]
            parts.append(" OR ".join(f"({b})" for b in branches) if branches else "FALSE")
        elif key == NOT:
            parts.append(f"NOT ({compile_sql_filter(value, params, placeholder)})")
        else:
            parts.append(_sql_condition(key, value, params, placeholder))

    if len(parts) == 1:
        return parts[0]
    return " AND ".join(f"({p})" for p in parts)


# MongoDB query documents

def _mongo_condition(field: str, value: Any) -> Dict[str, Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return {field: {"$in": list(value)}}
    if isinstance(value, Mapping):
        _check_condition(field, value)
        return {
            field: {
                _MONGO_OPERATORS[op]: list(operand) if op == "in" else operand
                for op, operand in value.items()
            }
        }
    return {field: value}


def compile_mongo_filter(where: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Compile a filter tree into a MongoDB query document."""
    if not where:
        return {}

    parts: List[Dict[str, Any]] = []
    for key, value in _check_tree(where).items():
        if key == AND:
            parts.append({"$and": [compile_mongo_filter(b) for b in _check_branches(key, value)] or [{}]})
        elif key == OR:
            branches = [compile_mongo_filter(b) for b in _check_branches(key, value)]
            # An empty OR matches nothing
            parts.append({"$or": branches} if branches else {"_id": {"$in": []}})
        elif key == NOT:
            parts.append({"$nor": [compile_mongo_filter(value)]})
        else:
            if key.startswith("$"):
                raise ValueError(f"Invalid field name: {key!r}")
            parts.append(_mongo_condition(key, value))

    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}
