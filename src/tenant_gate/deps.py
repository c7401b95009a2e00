"""Dependency injection singletons and request accessors for Tenant-Gate."""

from typing import Any, Optional

from fastapi import Request

from tenant_gate.common.config import get_settings
from tenant_gate.common.database import DatabaseManager
from tenant_gate.common.exceptions import TenantNotResolvedError, TenantRequiredError
from tenant_gate.identity import IdentityVerifier, ScopeIdentityVerifier
from tenant_gate.network import ClientIdentifier
from tenant_gate.pipeline import RequestPipeline
from tenant_gate.ratelimit import FixedWindowRateLimiter
from tenant_gate.tenants.context import TenantContext
from tenant_gate.tenants.directory import CachedTenantDirectory, SqlTenantDirectory
from tenant_gate.tenants.resolver import SOURCE_DEFAULT, TenantResolver
from tenant_gate.tenants.service import TenantService

_db: DatabaseManager | None = None
_tenants: TenantService | None = None
_directory: CachedTenantDirectory | None = None
_resolver: TenantResolver | None = None
_client_identifier: ClientIdentifier | None = None
_rate_limiter: FixedWindowRateLimiter | None = None
_identity_verifier: IdentityVerifier | None = None
_pipeline: RequestPipeline | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_tenant_service() -> TenantService:
    global _tenants
    if _tenants is None:
        _tenants = TenantService()
    return _tenants


def get_directory() -> CachedTenantDirectory:
    global _directory
    if _directory is None:
        settings = get_settings()
        _directory = CachedTenantDirectory(
            SqlTenantDirectory(get_db(), get_tenant_service()),
            ttl=settings.tenant_cache_ttl,
            maxsize=settings.tenant_cache_size,
        )
    return _directory


def get_resolver() -> TenantResolver:
    global _resolver
    if _resolver is None:
        settings = get_settings()
        _resolver = TenantResolver(
            get_directory(),
            default_tenant_id=settings.default_tenant_id,
            header_name=settings.tenant_header_name,
        )
    return _resolver


def get_client_identifier() -> ClientIdentifier:
    global _client_identifier
    if _client_identifier is None:
        _client_identifier = ClientIdentifier(get_settings().trusted_proxies)
    return _client_identifier


def get_rate_limiter() -> FixedWindowRateLimiter | None:
    global _rate_limiter
    settings = get_settings()
    if not settings.rate_limit_enabled:
        return None
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter(
            settings.rate_limit_policies,
            path_policies=settings.rate_limit_path_policies,
        )
    return _rate_limiter


def get_identity_verifier() -> IdentityVerifier:
    global _identity_verifier
    if _identity_verifier is None:
        _identity_verifier = ScopeIdentityVerifier(get_settings().tenant_claim_name)
    return _identity_verifier


def set_identity_verifier(verifier: IdentityVerifier) -> None:
    """Install the upstream identity verifier before the first request."""
    global _identity_verifier, _pipeline
    _identity_verifier = verifier
    _pipeline = None


def get_pipeline() -> RequestPipeline:
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        _pipeline = RequestPipeline(
            client_identifier=get_client_identifier(),
            identity_verifier=get_identity_verifier(),
            resolver=get_resolver(),
            directory=get_directory(),
            rate_limiter=get_rate_limiter(),
            forwarded_header_name=settings.forwarded_header_name,
            resolution_timeout=settings.resolution_timeout,
            excluded_paths=settings.excluded_paths,
        )
    return _pipeline


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _tenants, _directory, _resolver, _client_identifier
    global _rate_limiter, _identity_verifier, _pipeline
    _db = None
    _tenants = None
    _directory = None
    _resolver = None
    _client_identifier = None
    _rate_limiter = None
    _identity_verifier = None
    _pipeline = None


# ── Request accessors for downstream handlers ──


async def current_tenant(request: Request) -> TenantContext:
    """FastAPI dependency returning the request's tenant context."""
    context: Optional[TenantContext] = getattr(request.state, "tenant_context", None)
    if context is None:
        raise TenantNotResolvedError()
    return context


async def current_tenant_id(request: Request) -> int:
    """FastAPI dependency returning the id every query must be scoped to."""
    return (await current_tenant(request)).tenant_id


async def require_explicit_tenant(request: Request) -> TenantContext:
    """Like ``current_tenant`` but rejects requests that fell back to the default."""
    context = await current_tenant(request)
    if context.source == SOURCE_DEFAULT:
        raise TenantRequiredError()
    return context


async def current_tenant_has_feature(context: TenantContext, name: str) -> bool:
    return await context.has_feature(name)


async def current_tenant_setting(context: TenantContext, key: str, default: Any = None) -> Any:
    return await context.get_setting(key, default)
