"""Shared test fixtures for Tenant-Gate."""

import json
import os

import pytest
from httpx import ASGITransport, AsyncClient

from tenant_gate.common.exceptions import DirectoryUnavailableError
from tenant_gate.identity import RequestIdentity
from tenant_gate.tenants.directory import Tenant

CLAIMS_HEADER = "X-Test-Claims"


class FakeDirectory:
    """In-memory tenant directory that records every backing lookup."""

    def __init__(self, tenants=None, settings=None, features=None):
        self.tenants = {t.id: t for t in (tenants or [])}
        self.settings = settings or {}
        self.features = features or {}
        self.calls: list[tuple[str, object]] = []
        self.fail = False

    def _record(self, op, arg):
        self.calls.append((op, arg))
        if self.fail:
            raise DirectoryUnavailableError()

    async def find_by_domain(self, domain):
        self._record("domain", domain)
        return next(
            (t for t in self.tenants.values() if t.active and t.domain == domain), None
        )

    async def find_by_slug(self, slug):
        self._record("slug", slug)
        return next(
            (t for t in self.tenants.values() if t.active and t.slug == slug), None
        )

    async def find_by_id(self, tenant_id):
        self._record("id", tenant_id)
        return self.tenants.get(tenant_id)

    async def exists_and_active(self, tenant_id):
        self._record("exists", tenant_id)
        tenant = self.tenants.get(tenant_id)
        return tenant is not None and tenant.active

    async def get_settings(self, tenant_id):
        self._record("settings", tenant_id)
        return dict(self.settings.get(tenant_id, {}))

    async def get_feature_blob(self, tenant_id):
        self._record("features", tenant_id)
        return self.features.get(tenant_id)


class HeaderClaimsVerifier:
    """Stand-in for upstream token verification: claims as JSON in a header."""

    async def verify(self, request):
        raw = request.headers.get(CLAIMS_HEADER)
        if not raw:
            return RequestIdentity.anonymous()
        return RequestIdentity.from_claims(json.loads(raw))


@pytest.fixture
def tenants():
    return [
        Tenant(id=1, slug="master", name="Master"),
        Tenant(id=2, slug="beta", name="Beta"),
        Tenant(id=3, slug="gamma", name="Gamma"),
        Tenant(id=5, slug="acme", name="Acme"),
        Tenant(id=7, slug="acme-web", name="Acme Web", domain="acme.example.com"),
        Tenant(id=8, slug="closed", name="Closed", domain="closed.example.com", active=False),
        Tenant(id=9, slug="nine", name="Nine"),
    ]


@pytest.fixture
def directory(tenants):
    return FakeDirectory(
        tenants,
        settings={5: {"currency": "hours", "max_listings": "50"}},
        features={5: '["Listings", "messages"]', 9: "{not json"},
    )


@pytest.fixture
def claims():
    """Build request headers carrying verified claims."""
    def _claims(**values):
        return {CLAIMS_HEADER: json.dumps(values)}
    return _claims


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["TENANT_GATE_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["TENANT_GATE_DEFAULT_TENANT_ID"] = "1"

    # Clear caches and singletons so new env vars take effect
    from tenant_gate.common.config import get_settings
    get_settings.cache_clear()

    from tenant_gate.deps import reset_singletons, set_identity_verifier
    reset_singletons()
    set_identity_verifier(HeaderClaimsVerifier())

    from tenant_gate.app import create_app
    return create_app()


@pytest.fixture
async def seeded_db(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from tenant_gate.deps import get_db, get_tenant_service
    db = get_db()
    await db.init()
    await db.create_all()

    svc = get_tenant_service()
    async with db.get_session() as session:
        for slug in ("master", "beta", "gamma", "delta"):                 # ids 1-4
            await svc.create_tenant(session, name=slug.title(), slug=slug)
        acme = await svc.create_tenant(                                   # 5
            session, name="Acme", slug="acme", features=["listings", "Groups"]
        )
        await svc.create_tenant(session, name="Six", slug="six")          # 6
        await svc.create_tenant(                                          # 7
            session, name="Acme Web", slug="acme-web", domain="acme.example.com"
        )
        await svc.create_tenant(                                          # 8
            session, name="Closed", slug="closed", is_active=False
        )
        await svc.create_tenant(session, name="Nine", slug="nine")        # 9
        await svc.set_setting(session, acme.id, "currency", "hours")
    yield db
    await db.close()


@pytest.fixture
def make_client(app, seeded_db):
    """Factory for clients with a chosen host and peer address."""
    def _make(base_url="http://test", peer=("127.0.0.1", 123)):
        transport = ASGITransport(app=app, client=peer)
        return AsyncClient(transport=transport, base_url=base_url)
    return _make


@pytest.fixture
async def client(make_client):
    async with make_client(peer=("198.51.100.20", 123)) as ac:
        yield ac
