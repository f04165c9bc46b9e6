"""Tests for SecurityContext and the session-variable helpers."""
from __future__ import annotations

import dataclasses

import pytest
from sqlalchemy import text

from vendorhub.core.errors import AccessDeniedError
from vendorhub.db.context import Role, SecurityContext, read_session_context, reset_session_context, stamp_session_context


class TestSecurityContext:
    def test_tenant_context(self):
        ctx = SecurityContext.for_tenant("v1", actor_id="u1")
        assert ctx.role is Role.TENANT
        assert not ctx.is_admin
        assert ctx.require_tenant() == "v1"

    def test_admin_context_has_no_tenant(self):
        ctx = SecurityContext.for_admin(actor_id="root")
        assert ctx.is_admin
        assert ctx.tenant_id is None
        ctx.require_admin()

    def test_admin_cannot_act_as_tenant(self):
        with pytest.raises(AccessDeniedError):
            SecurityContext.for_admin().require_tenant()

    def test_tenant_cannot_act_as_admin(self):
        with pytest.raises(AccessDeniedError):
            SecurityContext.for_tenant("v1").require_admin()

    def test_tenant_context_without_tenant_is_rejected(self):
        ctx = SecurityContext(tenant_id=None)
        with pytest.raises(AccessDeniedError):
            ctx.require_tenant()
        assert not ctx.can_see(None)
        assert not ctx.can_see("")

    def test_can_see_mirrors_row_policy(self):
        ctx = SecurityContext.for_tenant("v1")
        assert ctx.can_see("v1")
        assert not ctx.can_see("v2")
        assert SecurityContext.for_admin().can_see("v2")

    def test_session_values_use_empty_string_for_missing_ids(self):
        assert SecurityContext(tenant_id=None).session_values() == {
            "tenant_id": "",
            "role": "tenant",
            "actor_id": "",
        }
        assert SecurityContext.for_admin("root").session_values()["role"] == "admin"

    def test_context_is_immutable(self):
        ctx = SecurityContext.for_tenant("v1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ctx.tenant_id = "v2"  # type: ignore[misc]


class TestSessionVariables:
    async def test_stamp_read_and_reset(self, sqlite_pool):
        pooled = await sqlite_pool.acquire()
        try:
            conn = pooled.connection
            await conn.begin()
            await stamp_session_context(conn, SecurityContext.for_tenant("v1", actor_id="u1"))
            assert await read_session_context(conn) == {"tenant_id": "v1", "role": "tenant", "actor_id": "u1"}
            await conn.commit()

            await reset_session_context(conn)
            assert await read_session_context(conn) == {"tenant_id": None, "role": None, "actor_id": None}
        finally:
            await pooled.release()

    async def test_stamp_ends_with_its_transaction(self, sqlite_pool):
        pooled = await sqlite_pool.acquire()
        try:
            conn = pooled.connection
            await conn.begin()
            await stamp_session_context(conn, SecurityContext.for_admin("root"))
            assert (await read_session_context(conn))["role"] == "admin"
            await conn.commit()

            assert await read_session_context(conn) == {"tenant_id": None, "role": None, "actor_id": None}
        finally:
            await pooled.release()

    async def test_reset_outlives_the_next_transaction(self, sqlite_pool):
        pooled = await sqlite_pool.acquire()
        try:
            conn = pooled.connection
            await conn.execute(text("SELECT set_config('app.tenant_id', 'stale', false)"))
            await conn.commit()
            assert (await read_session_context(conn))["tenant_id"] == "stale"
            await conn.commit()

            await reset_session_context(conn)
            await conn.begin()
            await conn.rollback()
            assert (await read_session_context(conn))["tenant_id"] is None
        finally:
            await pooled.release()
