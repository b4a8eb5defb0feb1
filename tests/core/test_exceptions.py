"""Tests for the exception hierarchy and HTTP mapping."""

import pytest

from neo_tenantdb.core.exceptions import (
    ConfigurationError,
    InvalidTenantId,
    NeoTenantDbError,
    TenantAlreadyExists,
    TenantConnectError,
    TenantDeleteError,
    TenantNotFound,
    TenantOperationError,
    UnsupportedForAdapter,
    UnsupportedForStrategy,
    UnsupportedOperationError,
    create_error_response,
    get_http_status_code,
)


class TestExceptionHierarchy:
    """Test exception classes."""

    def test_everything_derives_from_base(self):
        for cls in (
            ConfigurationError,
            InvalidTenantId,
            TenantAlreadyExists,
            TenantNotFound,
            TenantOperationError,
            UnsupportedOperationError,
        ):
            assert issubclass(cls, NeoTenantDbError)
        assert issubclass(UnsupportedForStrategy, UnsupportedOperationError)
        assert issubclass(UnsupportedForAdapter, UnsupportedOperationError)
        assert issubclass(TenantDeleteError, TenantOperationError)

    def test_operation_error_keeps_cause_summary(self):
        error = TenantDeleteError("acme", "delete tenant", OSError("disk full"))
        assert str(error) == "Failed to delete tenant for tenant 'acme': disk full"
        assert error.details == {"cause": "OSError", "tenant_id": "acme", "operation": "delete tenant"}

    def test_registry_level_operation_error(self):
        error = TenantOperationError(None, "list tenants", "timeout")
        assert "tenant registry" in str(error)
        assert error.tenant_id is None

    def test_unsupported_message(self):
        error = UnsupportedForStrategy("execute", "row-level isolation", "raw commands cannot be scoped", "acme")
        assert error.operation == "execute"
        assert "row-level isolation" in str(error)
        assert error.error_code == "UnsupportedForStrategy"


class TestHttpMapping:
    """Test HTTP status codes and error responses."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (InvalidTenantId("!!", "bad"), 400),
            (TenantNotFound("acme", "delete_tenant"), 404),
            (TenantAlreadyExists("acme"), 409),
            (UnsupportedForAdapter("clone_namespace", "adapter 'motor'"), 501),
            (TenantConnectError("acme", "connect"), 503),
            (TenantDeleteError("acme", "delete tenant"), 500),
            (ConfigurationError("bad"), 500),
            (ValueError("plain"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        assert get_http_status_code(error) == status

    def test_error_response(self):
        response = create_error_response(TenantNotFound("acme", "resolve_tenant"))
        assert response == {
            "error": {
                "code": "TenantNotFound",
                "message": "Tenant 'acme' not found during resolve_tenant",
                "details": {"tenant_id": "acme", "operation": "resolve_tenant"},
                "type": "TenantNotFound",
            }
        }
