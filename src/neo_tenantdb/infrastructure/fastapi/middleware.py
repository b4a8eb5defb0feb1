"""Tenant database middleware for FastAPI applications.

Resolves the tenant of each request, leases its connection for the duration
of the request and exposes it as ``request.state.tenant_db`` and through
:func:`neo_tenantdb.infrastructure.context.current_connection`.

The lease and the context binding end when ``call_next`` returns, before a
streaming response body is sent. Streaming endpoints that read the database
while producing the body should hold their own ``registry.tenant(...)`` lease.
"""

import logging
from typing import List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ...core.exceptions import (
    NeoTenantDbError,
    TenantNotFound,
    create_error_response,
    get_http_status_code,
)
from ...services.tenant_registry import TenantRegistry
from ...utils.sanitize import sanitize_tenant_id
from ..context import bind_tenant

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = ["/health", "/docs", "/redoc", "/openapi.json", "/metrics"]


class TenantDatabaseMiddleware(BaseHTTPMiddleware):
    """Bind each request to its tenant's database connection."""

    def __init__(
        self,
        app,
        registry: TenantRegistry,
        tenant_header: str = "X-Tenant-ID",
        query_param: str = "tenant_id",
        path_prefix: str = "tenant",
        subdomain_extraction: bool = False,
        required: bool = True,
        verify_exists: bool = True,
        exempt_paths: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.registry = registry
        self.tenant_header = tenant_header
        self.query_param = query_param
        self.path_prefix = path_prefix
        self.subdomain_extraction = subdomain_extraction
        self.required = required
        self.verify_exists = verify_exists
        self.exempt_paths = DEFAULT_EXEMPT_PATHS if exempt_paths is None else exempt_paths

    async def dispatch(self, request: Request, call_next) -> Response:
        """Resolve the tenant and run the request inside its scope."""

        # Skip tenant resolution for exempt paths
        if any(request.url.path.startswith(path) for path in self.exempt_paths):
            return await call_next(request)

        raw_tenant_id = self._extract_tenant_id(request)
        if not raw_tenant_id:
            if self.required:
                logger.warning(f"No tenant identifier on {request.method} {request.url.path}")
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={
                        "error": {
                            "code": "TenantRequired",
                            "message": "Tenant identification required",
                            "details": {"header": self.tenant_header},
                            "type": "TenantRequired",
                        }
                    },
                )
            request.state.tenant_id = None
            request.state.tenant_db = None
            return await call_next(request)

        try:
            tenant_id = sanitize_tenant_id(raw_tenant_id)
            if self.verify_exists and not await self.registry.tenant_exists(tenant_id):
                raise TenantNotFound(tenant_id, "resolve_tenant")
            connection = await self.registry.for_tenant(tenant_id)
        except NeoTenantDbError as e:
            logger.warning(f"Tenant resolution failed: {e}")
            return JSONResponse(status_code=get_http_status_code(e), content=create_error_response(e))

        request.state.tenant_id = tenant_id
        request.state.tenant_db = connection
        logger.debug(f"Tenant database bound: tenant_id={tenant_id}, path={request.url.path}")

        async with connection:
            with bind_tenant(connection):
                return await call_next(request)

    def _extract_tenant_id(self, request: Request) -> Optional[str]:
        """Extract tenant ID from header, query, path or subdomain."""

        # Method 1: Extract from header
        header_value = request.headers.get(self.tenant_header)
        if header_value:
            return header_value

        # Method 2: Extract from query parameter
        query_value = request.query_params.get(self.query_param)
        if query_value:
            return query_value

        # Method 3: Extract from path segment /tenant/{id}/...
        segments = [segment for segment in request.url.path.split("/") if segment]
        for index, segment in enumerate(segments[:-1]):
            if segment == self.path_prefix:
                return segments[index + 1]

        # Method 4: Extract from subdomain (if enabled)
        if self.subdomain_extraction:
            subdomain = self._extract_subdomain(request.headers.get("Host", ""))
            if subdomain and subdomain != "www":
                return subdomain

        return None

    def _extract_subdomain(self, host: str) -> Optional[str]:
        """Extract subdomain from host header."""
        # Remove port if present
        host = host.split(":")[0]

        # tenant.example.com
        parts = host.split(".")
        if len(parts) > 2:
            return parts[0]

        return None
