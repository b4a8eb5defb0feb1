"""Row-level tenant scoping rules.

Every read/update/delete filter is wrapped so the tenant clause is a
mandatory top-level conjunct, which means an ``OR`` supplied by the caller
can never widen the result past the tenant's rows.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ...core.exceptions import TenantQueryError

AND = "AND"
_MISSING = object()


def scope_filter(where: Optional[Mapping[str, Any]], tenant_field: str, tenant_id: str) -> Dict[str, Any]:
    """Conjoin the tenant clause with a caller filter.

    ``{}`` becomes ``{field: tenant}``; anything else becomes
    ``{"AND": [where, {field: tenant}]}``.
    """
    tenant_clause = {tenant_field: tenant_id}
    if not where:
        return tenant_clause
    if not isinstance(where, Mapping):
        raise ValueError(f"Filter must be a mapping, got {type(where).__name__}")
    return {AND: [dict(where), tenant_clause]}


def stamp_records(
    records: Sequence[Mapping[str, Any]],
    tenant_field: str,
    tenant_id: str,
    operation: str = "insert",
) -> List[Dict[str, Any]]:
    """Copy records, injecting the tenant value where it is absent.

    Raises:
        TenantQueryError: If a record already names another tenant
    """
    stamped = []
    for record in records:
        if not isinstance(record, Mapping):
            raise TenantQueryError(tenant_id, operation, f"record must be a mapping, got {type(record).__name__}")
        current = record.get(tenant_field, _MISSING)
        if current is not _MISSING and current is not None and current != tenant_id:
            raise TenantQueryError(tenant_id, operation, f"record belongs to tenant {current!r}")
        stamped.append({**record, tenant_field: tenant_id})
    return stamped


def check_update_values(
    values: Mapping[str, Any],
    tenant_field: str,
    tenant_id: str,
) -> Dict[str, Any]:
    """Reject updates that would move rows to another tenant."""
    if tenant_field in values and values[tenant_field] != tenant_id:
        raise TenantQueryError(
            tenant_id, "update", f"cannot change {tenant_field} to {values[tenant_field]!r}"
        )
    return dict(values)
