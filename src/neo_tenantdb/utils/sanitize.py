"""Identifier normalization.

Tenant identifiers are opaque caller strings. Before they take part in any
generated identifier (schema name, database name, URL segment) they are
normalized to ``[a-z0-9_-]``. Collection and field names used in generated
SQL are validated rather than rewritten.
"""

import re
from typing import Any

from ..config.constants import TenantIdRules
from ..core.exceptions import InvalidTenantId

_UNSAFE_CHARS = re.compile(TenantIdRules.UNSAFE_CHARS_PATTERN)
_SAFE_TENANT_ID = re.compile(TenantIdRules.SAFE_PATTERN)
_ALNUM = re.compile(r"[a-z0-9]")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def sanitize_tenant_id(tenant_id: Any) -> str:
    """Normalize a tenant identifier to the safe charset.

    Lowercases and replaces every character outside ``[a-z0-9_-]`` with ``_``.
    Idempotent: ``sanitize_tenant_id(sanitize_tenant_id(x)) == sanitize_tenant_id(x)``.

    Raises:
        InvalidTenantId: If the id is not a string, is blank, has no
            alphanumeric character, or is longer than 63 characters
    """
    if not isinstance(tenant_id, str):
        raise InvalidTenantId(tenant_id, "tenant id must be a string")

    stripped = tenant_id.strip()
    if not stripped:
        raise InvalidTenantId(tenant_id, "tenant id cannot be empty")

    sanitized = _UNSAFE_CHARS.sub(TenantIdRules.REPLACEMENT, stripped.lower())

    if not _ALNUM.search(sanitized):
        raise InvalidTenantId(tenant_id, "tenant id must contain a letter or digit")

    if len(sanitized) > TenantIdRules.MAX_LENGTH:
        raise InvalidTenantId(
            tenant_id, f"tenant id exceeds {TenantIdRules.MAX_LENGTH} characters"
        )

    return sanitized


def is_safe_tenant_id(value: str) -> bool:
    """Check whether ``value`` is already in normalized form."""
    return bool(value) and bool(_SAFE_TENANT_ID.match(value)) and len(value) <= TenantIdRules.MAX_LENGTH


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """Validate a collection/field name before it is placed into SQL.

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind} name: {name!r}")
    return name


def quote_identifier(name: str) -> str:
    """Double-quote an already-safe identifier for PostgreSQL."""
    if '"' in name or "\x00" in name:
        raise ValueError(f"Identifier cannot contain quotes: {name!r}")
    return f'"{name}"'
