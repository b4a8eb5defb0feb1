"""Tests for the FastAPI tenant database middleware."""

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from fastapi.responses import StreamingResponse
from httpx import ASGITransport, AsyncClient

from neo_tenantdb.features.middleware import TenantConnection
from neo_tenantdb.infrastructure import current_tenant_id
from neo_tenantdb.infrastructure.fastapi import (
    TenantDatabaseMiddleware,
    get_tenant_db,
    get_tenant_id,
    tenantdb_lifespan,
)


@pytest_asyncio.fixture
async def registry(make_registry):
    db = make_registry(strategy="schema")
    await db.create_tenant("acme")
    return db


def build_app(registry, **middleware_options):
    app = FastAPI()
    app.add_middleware(TenantDatabaseMiddleware, registry=registry, **middleware_options)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/users")
    async def list_users(db: TenantConnection = Depends(get_tenant_db)):
        await db.insert("users", {"email": "a@acme.test"})
        return {"tenant": db.tenant_id, "count": await db.count("users"), "ambient": current_tenant_id()}

    @app.get("/tenant/{tenant}/whoami")
    async def whoami(tenant_id: str = Depends(get_tenant_id)):
        return {"tenant": tenant_id}

    @app.get("/optional")
    async def optional(tenant_id: str = Depends(get_tenant_id)):
        return {"tenant": tenant_id}

    return app


def client_for(app, host="test"):
    return AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{host}")


class TestTenantDatabaseMiddleware:
    """Test tenant resolution per request."""

    @pytest.mark.asyncio
    async def test_header_resolves_tenant(self, registry):
        async with client_for(build_app(registry)) as client:
            response = await client.get("/users", headers={"X-Tenant-ID": "ACME"})

        assert response.status_code == 200
        assert response.json() == {"tenant": "acme", "count": 1, "ambient": "acme"}

    @pytest.mark.asyncio
    async def test_query_and_path_resolution(self, registry):
        async with client_for(build_app(registry)) as client:
            by_query = await client.get("/users", params={"tenant_id": "acme"})
            by_path = await client.get("/tenant/acme/whoami")

        assert by_query.status_code == 200
        assert by_path.json() == {"tenant": "acme"}

    @pytest.mark.asyncio
    async def test_subdomain_resolution(self, registry):
        app = build_app(registry, subdomain_extraction=True)
        async with client_for(app, host="acme.example.com") as client:
            response = await client.get("/users")

        assert response.status_code == 200
        assert response.json()["tenant"] == "acme"

    @pytest.mark.asyncio
    async def test_missing_tenant(self, registry):
        async with client_for(build_app(registry)) as client:
            response = await client.get("/users")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TenantRequired"

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, registry):
        async with client_for(build_app(registry)) as client:
            response = await client.get("/users", headers={"X-Tenant-ID": "ghost"})

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["type"] == "TenantNotFound"
        assert body["error"]["details"]["tenant_id"] == "ghost"

    @pytest.mark.asyncio
    async def test_invalid_tenant(self, registry):
        async with client_for(build_app(registry)) as client:
            response = await client.get("/users", headers={"X-Tenant-ID": "***"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "InvalidTenantId"

    @pytest.mark.asyncio
    async def test_exempt_paths_skip_resolution(self, registry):
        async with client_for(build_app(registry)) as client:
            response = await client.get("/health")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_optional_tenant(self, registry):
        app = build_app(registry, required=False)
        async with client_for(app) as client:
            response = await client.get("/optional")

        assert response.status_code == 400
        assert response.json()["detail"] == "Tenant identification required"

    @pytest.mark.asyncio
    async def test_connection_released_after_request(self, registry):
        async with client_for(build_app(registry)) as client:
            await client.get("/users", headers={"X-Tenant-ID": "acme"})

        connection = await registry.for_tenant("acme")
        assert connection.in_flight == 0

    @pytest.mark.asyncio
    async def test_streaming_body_holds_its_own_lease(self, registry):
        app = build_app(registry)

        @app.get("/export")
        async def export(tenant_id: str = Depends(get_tenant_id)):
            async def rows():
                async with registry.tenant(tenant_id) as db:
                    await db.insert("users", {"email": "a@acme.test"})
                    for row in await db.find("users"):
                        yield f"{row['email']}\n"

            return StreamingResponse(rows(), media_type="text/plain")

        async with client_for(app) as client:
            response = await client.get("/export", headers={"X-Tenant-ID": "acme"})

        assert response.status_code == 200
        assert response.text == "a@acme.test\n"
        assert (await registry.for_tenant("acme")).in_flight == 0


class TestLifespan:
    """Test the lifespan helper."""

    @pytest.mark.asyncio
    async def test_disconnects_on_shutdown(self, registry):
        app = FastAPI(lifespan=tenantdb_lifespan(registry))

        async with tenantdb_lifespan(registry)(app):
            assert not registry.closed
        assert registry.closed
