"""Tests for the ambient tenant context."""

import asyncio

import pytest

from neo_tenantdb.core.exceptions import TenantConnectError
from neo_tenantdb.infrastructure import TenantContext, current_connection, current_tenant_id
from neo_tenantdb.infrastructure.context import require_connection


async def insert_via_context(email):
    connection = require_connection()
    await connection.insert("users", {"email": email})
    return current_tenant_id()


class TestTenantContext:
    """Test TenantContext.run."""

    @pytest.mark.asyncio
    async def test_run_binds_connection(self, make_registry):
        db = make_registry()
        context = TenantContext(db)

        tenant = await context.run("Acme", insert_via_context, "a@acme.test")

        assert tenant == "acme"
        assert current_tenant_id() is None
        assert current_connection() is None
        async with db.tenant("acme") as acme:
            assert await acme.count("users") == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(self, make_registry):
        db = make_registry()
        context = TenantContext(db)

        async def report(delay):
            await asyncio.sleep(delay)
            return TenantContext.get_tenant_id(), TenantContext.get_connection().tenant_id

        results = await asyncio.gather(
            context.run("acme", report, 0.02),
            context.run("other", report, 0.01),
        )
        assert results == [("acme", "acme"), ("other", "other")]

    @pytest.mark.asyncio
    async def test_lease_held_during_run(self, make_registry):
        db = make_registry()
        context = TenantContext(db)

        async def in_flight():
            return current_connection().in_flight

        assert await context.run("acme", in_flight) == 1
        assert (await db.for_tenant("acme")).in_flight == 0

    def test_require_connection_outside_scope(self):
        with pytest.raises(TenantConnectError):
            require_connection()
