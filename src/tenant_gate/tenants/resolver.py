"""Multi-source tenant resolution.

Resolution order:

1. Domain — request host bound to an active tenant (short-circuits).
2. Header — explicit tenant id header naming an active tenant, reconciled
   against the verified tenant claim.
3. Claim — tenant id carried by an authenticated identity.
4. Path — first path segment matching an active tenant slug.
5. Default — the configured master tenant.

A header/claim disagreement raises ``TenantConflictError``. Directory
outages propagate as ``DirectoryUnavailableError``; neither ever degrades to
the default tenant.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from tenant_gate.common.exceptions import TenantConflictError
from tenant_gate.identity import RequestIdentity, parse_tenant_id
from tenant_gate.tenants.directory import TenantDirectory

logger = logging.getLogger(__name__)

SOURCE_DOMAIN = "domain"
SOURCE_HEADER = "header"
SOURCE_CLAIM = "claim"
SOURCE_PATH = "path"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedTenant:
    tenant_id: int
    source: str
    slug: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.source == SOURCE_DEFAULT


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup.

    Starlette ``Headers`` already match case-insensitively; the scan only
    runs for plain dicts passed by the CLI and direct callers.
    """
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value


def first_path_segment(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    for segment in path.split("?", 1)[0].split("/"):
        if segment:
            return segment
    return None


class TenantResolver:
    """Applies the tenant precedence chain to one request."""

    def __init__(
        self,
        directory: TenantDirectory,
        default_tenant_id: int = 1,
        header_name: str = "X-Tenant-ID",
    ):
        self.directory = directory
        self.default_tenant_id = default_tenant_id
        self.header_name = header_name

    async def resolve(
        self,
        host: Optional[str],
        headers: Mapping[str, str],
        identity: RequestIdentity,
        path: Optional[str],
    ) -> ResolvedTenant:
        claim_tenant = identity.tenant_id_claim if identity.authenticated else None

        if host:
            tenant = await self.directory.find_by_domain(host)
            if tenant is not None:
                return ResolvedTenant(tenant.id, SOURCE_DOMAIN, tenant.slug)

        header_tenant = parse_tenant_id(_get_header(headers, self.header_name))
        if header_tenant is not None and await self.directory.exists_and_active(header_tenant):
            if claim_tenant is not None and claim_tenant != header_tenant:
                logger.warning(
                    "Tenant mismatch: header=%s claim=%s",
                    header_tenant,
                    claim_tenant,
                    extra={
                        "header_tenant": header_tenant,
                        "claim_tenant": claim_tenant,
                        "path": path,
                    },
                )
                raise TenantConflictError(header_tenant, claim_tenant)
            return ResolvedTenant(header_tenant, SOURCE_HEADER)

        if claim_tenant is not None:
            return ResolvedTenant(claim_tenant, SOURCE_CLAIM)

        slug = first_path_segment(path)
        if slug:
            tenant = await self.directory.find_by_slug(slug)
            if tenant is not None:
                return ResolvedTenant(tenant.id, SOURCE_PATH, tenant.slug)

        return ResolvedTenant(self.default_tenant_id, SOURCE_DEFAULT)
