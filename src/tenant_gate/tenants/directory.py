"""Tenant directory — read-mostly tenant lookups with a shared TTL cache.

The directory is the only part of tenant resolution that touches the backing
store. ``SqlTenantDirectory`` reads through ``TenantService``;
``CachedTenantDirectory`` wraps any directory so that repeated domain, slug
and existence lookups within the cache interval never reach the store.

Backing-store failures surface as ``DirectoryUnavailableError`` so that
callers can tell an outage apart from a genuine "no such tenant".
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from cachetools import TTLCache
from sqlalchemy.exc import SQLAlchemyError

from tenant_gate.common.database import DatabaseManager
from tenant_gate.common.exceptions import DirectoryUnavailableError
from tenant_gate.tenants.models import TenantModel
from tenant_gate.tenants.service import TenantService, normalize_domain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tenant:
    """Detached, immutable view of a tenant record."""

    id: int
    slug: str
    name: str = ""
    domain: Optional[str] = None
    active: bool = True

    @classmethod
    def from_model(cls, model: TenantModel) -> "Tenant":
        return cls(
            id=model.id,
            slug=model.slug,
            name=model.name,
            domain=model.domain,
            active=model.is_active,
        )


class TenantDirectory(Protocol):
    async def find_by_domain(self, domain: str) -> Optional[Tenant]: ...

    async def find_by_slug(self, slug: str) -> Optional[Tenant]: ...

    async def find_by_id(self, tenant_id: int) -> Optional[Tenant]: ...

    async def exists_and_active(self, tenant_id: int) -> bool: ...

    async def get_settings(self, tenant_id: int) -> dict[str, str]: ...

    async def get_feature_blob(self, tenant_id: int) -> Optional[str]: ...


class SqlTenantDirectory:
    """Directory backed by the tenants tables."""

    def __init__(self, db: DatabaseManager, service: TenantService | None = None):
        self.db = db
        self.service = service or TenantService()

    async def _run(self, operation: str, fn, *args):
        try:
            async with self.db.get_session() as session:
                return await fn(session, *args)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Tenant directory %s failed: %s", operation, exc)
            raise DirectoryUnavailableError() from exc

    async def find_by_domain(self, domain: str) -> Optional[Tenant]:
        model = await self._run("find_by_domain", self.service.get_by_domain, domain)
        return Tenant.from_model(model) if model else None

    async def find_by_slug(self, slug: str) -> Optional[Tenant]:
        model = await self._run("find_by_slug", self.service.get_by_slug, slug)
        return Tenant.from_model(model) if model else None

    async def find_by_id(self, tenant_id: int) -> Optional[Tenant]:
        model = await self._run("find_by_id", self.service.get_by_id, tenant_id)
        return Tenant.from_model(model) if model else None

    async def exists_and_active(self, tenant_id: int) -> bool:
        return await self._run("exists_and_active", self.service.exists_and_active, tenant_id)

    async def get_settings(self, tenant_id: int) -> dict[str, str]:
        return await self._run("get_settings", self.service.get_settings, tenant_id)

    async def get_feature_blob(self, tenant_id: int) -> Optional[str]:
        return await self._run("get_feature_blob", self.service.get_feature_blob, tenant_id)


class CachedTenantDirectory:
    """Wraps a directory with a process-wide TTL cache.

    Only positive domain/slug hits are cached so a freshly provisioned
    tenant resolves at once. Existence checks are cached either way.
    Entries are written once and never modified; concurrent misses for the
    same key both query the store and the last write wins. Settings and
    feature blobs pass straight through.
    """

    def __init__(
        self,
        inner: TenantDirectory,
        ttl: int = 600,
        maxsize: int = 4096,
        timer=time.monotonic,
    ):
        self.inner = inner
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def _get(self, key: tuple):
        with self._lock:
            return self._cache.get(key)

    def _set(self, key: tuple, value) -> None:
        with self._lock:
            self._cache[key] = value

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()

    async def find_by_domain(self, domain: str) -> Optional[Tenant]:
        key = ("domain", normalize_domain(domain))
        tenant = self._get(key)
        if tenant is None:
            tenant = await self.inner.find_by_domain(key[1])
            if tenant is not None:
                self._set(key, tenant)
        return tenant

    async def find_by_slug(self, slug: str) -> Optional[Tenant]:
        key = ("slug", slug)
        tenant = self._get(key)
        if tenant is None:
            tenant = await self.inner.find_by_slug(slug)
            if tenant is not None:
                self._set(key, tenant)
        return tenant

    async def find_by_id(self, tenant_id: int) -> Optional[Tenant]:
        key = ("id", tenant_id)
        tenant = self._get(key)
        if tenant is None:
            tenant = await self.inner.find_by_id(tenant_id)
            if tenant is not None:
                self._set(key, tenant)
        return tenant

    async def exists_and_active(self, tenant_id: int) -> bool:
        key = ("exists", tenant_id)
        exists = self._get(key)
        if exists is None:
            exists = await self.inner.exists_and_active(tenant_id)
            self._set(key, exists)
        return exists

    async def get_settings(self, tenant_id: int) -> dict[str, str]:
        return await self.inner.get_settings(tenant_id)

    async def get_feature_blob(self, tenant_id: int) -> Optional[str]:
        return await self.inner.get_feature_blob(tenant_id)
