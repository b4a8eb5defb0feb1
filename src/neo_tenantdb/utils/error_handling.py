"""Standardized error handling for tenant operations.

Backend exceptions never leave the library raw: they are logged with the
tenant and operation attached and re-raised as a member of the
:mod:`neo_tenantdb.core.exceptions` taxonomy, keeping the backend exception as
``__cause__``. Library exceptions and cancellation pass through untouched.
"""

import logging
import time
from typing import Any, Dict, Optional, Type

from ..core.exceptions import NeoTenantDbError, TenantOperationError

logger = logging.getLogger(__name__)


class TenantOperationContext:
    """Async context manager wrapping one backend operation for one tenant.

    Usage:
        async with TenantOperationContext("delete_tenant", "acme", TenantDeleteError):
            await adapter.drop_namespace(handle, NamespaceKind.SCHEMA, "acme")
    """

    def __init__(
        self,
        operation_name: str,
        tenant_id: Optional[str] = None,
        error_class: Type[TenantOperationError] = TenantOperationError,
        log_level: int = logging.DEBUG,
        track_timing: bool = True,
    ):
        self.operation_name = operation_name
        self.tenant_id = tenant_id
        self.error_class = error_class
        self.log_level = log_level
        self.track_timing = track_timing
        self.start_time: Optional[float] = None
        self.context: Dict[str, Any] = {
            "operation": operation_name,
            "tenant_id": tenant_id,
        }

    async def __aenter__(self) -> "TenantOperationContext":
        self.start_time = time.perf_counter() if self.track_timing else None
        logger.log(
            self.log_level,
            f"Starting {self.operation_name} | {self.context}",
            extra={"structured_data": dict(self.context)},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self.track_timing and self.start_time is not None:
            duration_ms = (time.perf_counter() - self.start_time) * 1000
            self.context["duration_ms"] = f"{duration_ms:.2f}"

        if exc_type is None:
            logger.log(
                self.log_level,
                f"Completed {self.operation_name} | {self.context}",
                extra={"structured_data": dict(self.context)},
            )
            return False

        # Cancellation and other BaseExceptions propagate as-is
        if not issubclass(exc_type, Exception):
            return False

        self.context["error"] = str(exc_val)
        if isinstance(exc_val, NeoTenantDbError):
            logger.warning(
                f"Rejected {self.operation_name} | {self.context}",
                extra={"structured_data": dict(self.context)},
            )
            return False

        logger.error(
            f"Failed {self.operation_name} | {self.context}",
            extra={"structured_data": dict(self.context)},
        )
        raise self.error_class(self.tenant_id, self.operation_name, exc_val) from exc_val

    def add_context(self, key: str, value: Any) -> None:
        """Add additional context information."""
        self.context[key] = value
