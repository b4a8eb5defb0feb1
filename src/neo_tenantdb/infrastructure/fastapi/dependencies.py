"""FastAPI dependencies and lifespan helpers."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, HTTPException, Request, status

from ...features.middleware.tenant_connection import TenantConnection
from ...services.tenant_registry import TenantRegistry

logger = logging.getLogger(__name__)


def get_tenant_id(request: Request) -> str:
    """Tenant id resolved by :class:`TenantDatabaseMiddleware`."""
    tenant_id: Optional[str] = getattr(request.state, "tenant_id", None)
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant identification required",
        )
    return tenant_id


def get_tenant_db(request: Request) -> TenantConnection:
    """Tenant connection bound to the current request.

    Usage:
        @app.get("/users")
        async def list_users(db: TenantConnection = Depends(get_tenant_db)):
            return await db.find("users")
    """
    connection: Optional[TenantConnection] = getattr(request.state, "tenant_db", None)
    if connection is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant identification required",
        )
    return connection


def tenantdb_lifespan(registry: TenantRegistry) -> Callable[[FastAPI], AsyncIterator[None]]:
    """Lifespan that disconnects the registry on application shutdown.

    Usage:
        app = FastAPI(lifespan=tenantdb_lifespan(registry))
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info("Application shutting down, disconnecting tenant databases")
            await registry.disconnect()

    return lifespan
