"""Request-scoped tenant context."""

import json
import logging
from typing import Any, Callable, Optional

from tenant_gate.common.exceptions import TenantNotResolvedError
from tenant_gate.tenants.directory import TenantDirectory

logger = logging.getLogger(__name__)


def parse_features(blob: Optional[str]) -> frozenset[str]:
    """Parse a stored feature blob into lower-cased flag names.

    Malformed data yields an empty set; non-string entries are skipped.
    """
    if not blob:
        return frozenset()
    try:
        raw = json.loads(blob)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Ignoring malformed feature blob")
        return frozenset()
    if not isinstance(raw, list):
        logger.debug("Ignoring feature blob that is not a list")
        return frozenset()
    return frozenset(item.lower() for item in raw if isinstance(item, str))


class TenantContext:
    """Holds the resolved tenant for one request.

    Settings and features are read from the directory on first access and
    kept for the rest of the request. One instance per request; never
    shared.
    """

    def __init__(self, directory: TenantDirectory):
        self._directory = directory
        self._tenant_id: Optional[int] = None
        self._source: Optional[str] = None
        self._slug: Optional[str] = None
        self._slug_loaded = False
        self._settings: Optional[dict[str, str]] = None
        self._features: Optional[frozenset[str]] = None

    def set(self, tenant_id: int, slug: Optional[str] = None, source: Optional[str] = None) -> None:
        """Bind the context to a tenant, dropping anything loaded for a previous one."""
        if self._tenant_id is not None:
            logger.warning(
                "Tenant context re-targeted from %s to %s",
                self._tenant_id,
                tenant_id,
                extra={"tenant_id": tenant_id},
            )
        self._tenant_id = tenant_id
        self._source = source
        self._slug = slug
        self._slug_loaded = slug is not None
        self._settings = None
        self._features = None

    @property
    def is_resolved(self) -> bool:
        return self._tenant_id is not None

    @property
    def tenant_id(self) -> int:
        if self._tenant_id is None:
            raise TenantNotResolvedError()
        return self._tenant_id

    @property
    def source(self) -> Optional[str]:
        return self._source

    async def tenant_slug(self) -> Optional[str]:
        if not self._slug_loaded:
            tenant = await self._directory.find_by_id(self.tenant_id)
            self._slug = tenant.slug if tenant else None
            self._slug_loaded = True
        return self._slug

    async def settings(self) -> dict[str, str]:
        if self._settings is None:
            self._settings = dict(await self._directory.get_settings(self.tenant_id))
        return dict(self._settings)

    async def get_setting(
        self,
        key: str,
        default: Any = None,
        cast: Optional[Callable[[str], Any]] = None,
    ) -> Any:
        """Return a tenant setting, optionally converted with ``cast``.

        Missing keys and failed conversions return ``default``.
        """
        settings = await self.settings()
        if key not in settings:
            return default
        value = settings[key]
        if cast is None:
            return value
        try:
            return cast(value)
        except (TypeError, ValueError):
            return default

    async def features(self) -> frozenset[str]:
        if self._features is None:
            blob = await self._directory.get_feature_blob(self.tenant_id)
            self._features = parse_features(blob)
        return self._features

    async def has_feature(self, name: str) -> bool:
        return name.lower() in await self.features()
