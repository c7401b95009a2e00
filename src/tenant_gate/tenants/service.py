"""Tenant data-access service."""

import json

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_gate.tenants.models import TenantModel, TenantSettingModel


def normalize_domain(domain: str) -> str:
    """Lower-case a host name and strip any port and trailing dot."""
    host = domain.strip().lower()
    if host.startswith("["):
        # Bracketed IPv6 literal, e.g. "[::1]:8080"
        host = host[1:].split("]", 1)[0]
    elif host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host.rstrip(".")


class TenantService:
    """Tenant lookups and provisioning helpers."""

    async def create_tenant(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
        domain: str | None = None,
        features: list[str] | None = None,
        is_active: bool = True,
    ) -> TenantModel:
        tenant = TenantModel(
            name=name,
            slug=slug,
            domain=normalize_domain(domain) if domain else None,
            features=json.dumps(features) if features is not None else None,
            is_active=is_active,
        )
        session.add(tenant)
        await session.flush()
        return tenant

    async def get_by_id(
        self, session: AsyncSession, tenant_id: int
    ) -> TenantModel | None:
        return await session.get(TenantModel, tenant_id)

    async def get_by_slug(
        self, session: AsyncSession, slug: str, active_only: bool = True
    ) -> TenantModel | None:
        query = select(TenantModel).where(TenantModel.slug == slug)
        if active_only:
            query = query.where(TenantModel.is_active.is_(True))
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_domain(
        self, session: AsyncSession, domain: str, active_only: bool = True
    ) -> TenantModel | None:
        query = select(TenantModel).where(TenantModel.domain == normalize_domain(domain))
        if active_only:
            query = query.where(TenantModel.is_active.is_(True))
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def exists_and_active(self, session: AsyncSession, tenant_id: int) -> bool:
        result = await session.execute(
            select(TenantModel.id).where(
                TenantModel.id == tenant_id,
                TenantModel.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none() is not None

    async def list_tenants(self, session: AsyncSession) -> list[TenantModel]:
        result = await session.execute(select(TenantModel).order_by(TenantModel.id))
        return list(result.scalars().all())

    async def get_settings(self, session: AsyncSession, tenant_id: int) -> dict[str, str]:
        result = await session.execute(
            select(TenantSettingModel.key, TenantSettingModel.value).where(
                TenantSettingModel.tenant_id == tenant_id
            )
        )
        return {key: value for key, value in result.all()}

    async def set_setting(
        self, session: AsyncSession, tenant_id: int, key: str, value: str
    ) -> TenantSettingModel:
        result = await session.execute(
            select(TenantSettingModel).where(
                TenantSettingModel.tenant_id == tenant_id,
                TenantSettingModel.key == key,
            )
        )
        setting = result.scalar_one_or_none()
        if setting is None:
            setting = TenantSettingModel(tenant_id=tenant_id, key=key, value=value)
            session.add(setting)
        else:
            setting.value = value
        await session.flush()
        return setting

    async def get_feature_blob(self, session: AsyncSession, tenant_id: int) -> str | None:
        result = await session.execute(
            select(TenantModel.features).where(TenantModel.id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def set_feature_blob(
        self, session: AsyncSession, tenant_id: int, blob: str | None
    ) -> bool:
        """Store the raw feature blob as-is. Returns False if the tenant is missing."""
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None:
            return False
        tenant.features = blob
        await session.flush()
        return True

    async def set_active(
        self, session: AsyncSession, tenant_id: int, active: bool
    ) -> TenantModel | None:
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None:
            return None
        tenant.is_active = active
        await session.flush()
        return tenant
