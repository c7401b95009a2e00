"""Tests for the SQL-backed and cached tenant directories."""

import pytest
from sqlalchemy.exc import OperationalError

from tenant_gate.common.config import TenantGateSettings
from tenant_gate.common.database import DatabaseManager
from tenant_gate.common.exceptions import DirectoryUnavailableError
from tenant_gate.tenants.directory import CachedTenantDirectory, SqlTenantDirectory, Tenant
from tenant_gate.tenants.service import TenantService


@pytest.fixture
async def db():
    manager = DatabaseManager(TenantGateSettings(db_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def sql_directory(db):
    svc = TenantService()
    async with db.get_session() as session:
        acme = await svc.create_tenant(
            session, name="Acme", slug="acme", domain="Acme.Example.com", features=["x"]
        )
        await svc.create_tenant(session, name="Off", slug="off", domain="off.test", is_active=False)
        await svc.set_setting(session, acme.id, "currency", "hours")
    return SqlTenantDirectory(db, svc)


class TestSqlTenantDirectory:
    async def test_find_by_domain_normalizes_host(self, sql_directory):
        tenant = await sql_directory.find_by_domain("ACME.example.com:8443")
        assert isinstance(tenant, Tenant)
        assert tenant.slug == "acme"

    async def test_inactive_domain_not_found(self, sql_directory):
        assert await sql_directory.find_by_domain("off.test") is None

    async def test_find_by_slug(self, sql_directory):
        tenant = await sql_directory.find_by_slug("acme")
        assert tenant.id == 1
        assert await sql_directory.find_by_slug("off") is None
        assert await sql_directory.find_by_slug("nope") is None

    async def test_find_by_id_includes_inactive(self, sql_directory):
        tenant = await sql_directory.find_by_id(2)
        assert tenant.active is False

    async def test_exists_and_active(self, sql_directory):
        assert await sql_directory.exists_and_active(1) is True
        assert await sql_directory.exists_and_active(2) is False
        assert await sql_directory.exists_and_active(99) is False

    async def test_settings_and_features(self, sql_directory):
        assert await sql_directory.get_settings(1) == {"currency": "hours"}
        assert await sql_directory.get_settings(2) == {}
        assert await sql_directory.get_feature_blob(1) == '["x"]'
        assert await sql_directory.get_feature_blob(2) is None

    async def test_uninitialized_database_is_unavailable(self):
        directory = SqlTenantDirectory(DatabaseManager(TenantGateSettings()))
        with pytest.raises(DirectoryUnavailableError):
            await directory.find_by_slug("acme")

    async def test_store_error_is_unavailable(self, sql_directory, monkeypatch):
        async def boom(session, *args):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(sql_directory.service, "get_by_domain", boom)
        with pytest.raises(DirectoryUnavailableError):
            await sql_directory.find_by_domain("acme.example.com")


class TestCachedTenantDirectory:
    async def test_domain_hit_cached(self, directory):
        cached = CachedTenantDirectory(directory, ttl=600)
        first = await cached.find_by_domain("acme.example.com")
        second = await cached.find_by_domain("ACME.example.com")
        assert first == second
        assert directory.calls == [("domain", "acme.example.com")]

    async def test_slug_hit_cached(self, directory):
        cached = CachedTenantDirectory(directory)
        await cached.find_by_slug("acme")
        await cached.find_by_slug("acme")
        assert directory.calls == [("slug", "acme")]

    async def test_misses_not_cached(self, directory):
        cached = CachedTenantDirectory(directory)
        assert await cached.find_by_slug("newco") is None
        directory.tenants[10] = Tenant(id=10, slug="newco")
        tenant = await cached.find_by_slug("newco")
        assert tenant.id == 10

    async def test_existence_cached_both_ways(self, directory):
        cached = CachedTenantDirectory(directory)
        assert await cached.exists_and_active(3) is True
        assert await cached.exists_and_active(404) is False
        assert await cached.exists_and_active(3) is True
        assert await cached.exists_and_active(404) is False
        assert directory.calls == [("exists", 3), ("exists", 404)]

    async def test_entries_expire(self, directory):
        now = [1000.0]
        cached = CachedTenantDirectory(directory, ttl=600, timer=lambda: now[0])
        await cached.find_by_slug("acme")
        now[0] += 601
        await cached.find_by_slug("acme")
        assert directory.calls.count(("slug", "acme")) == 2

    async def test_outage_not_cached(self, directory):
        cached = CachedTenantDirectory(directory)
        directory.fail = True
        with pytest.raises(DirectoryUnavailableError):
            await cached.exists_and_active(3)
        directory.fail = False
        assert await cached.exists_and_active(3) is True

    async def test_settings_pass_through(self, directory):
        cached = CachedTenantDirectory(directory)
        await cached.get_settings(5)
        await cached.get_settings(5)
        await cached.get_feature_blob(5)
        assert directory.calls == [("settings", 5), ("settings", 5), ("features", 5)]

    async def test_invalidate(self, directory):
        cached = CachedTenantDirectory(directory)
        await cached.find_by_slug("acme")
        cached.invalidate()
        await cached.find_by_slug("acme")
        assert directory.calls.count(("slug", "acme")) == 2
