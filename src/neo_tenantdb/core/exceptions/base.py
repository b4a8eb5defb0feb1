"""Base exceptions for neo-tenantdb.

This module defines the root of the exception hierarchy. Every error raised by
the library carries an error code, structured details, and - where one applies -
the tenant id and the operation that was attempted, so failures are actionable
without inspecting internal state.
"""

from typing import Any, Dict, Optional


class NeoTenantDbError(Exception):
    """Base exception for all neo-tenantdb errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.tenant_id = tenant_id
        self.operation = operation
        if tenant_id is not None:
            self.details.setdefault("tenant_id", tenant_id)
        if operation is not None:
            self.details.setdefault("operation", operation)


# Default HTTP status codes per exception class name. Looked up along the MRO
# so subclasses inherit their parent's status.
HTTP_STATUS_CODES: Dict[str, int] = {
    "InvalidTenantId": 400,
    "TenantNotFound": 404,
    "TenantAlreadyExists": 409,
    "UnsupportedOperationError": 501,
    "ConfigurationError": 500,
    "TenantConnectError": 503,
    "TenantOperationError": 500,
    "NeoTenantDbError": 500,
}


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception.

    Args:
        exception: The exception instance

    Returns:
        HTTP status code (500 for anything unmapped)
    """
    for klass in type(exception).__mro__:
        status_code = HTTP_STATUS_CODES.get(klass.__name__)
        if status_code is not None:
            return status_code
    return 500


def create_error_response(exception: NeoTenantDbError) -> Dict[str, Any]:
    """Create standardized error response from exception.

    Args:
        exception: The neo-tenantdb exception

    Returns:
        Error response dictionary
    """
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
