"""Request pipeline — client identification, identity, tenant resolution.

Each request passes through the same fixed sequence:

    START -> IDENTITY_VERIFIED -> TENANT_RESOLVED -> READY

The client partition key is computed (and rate limiting applied) before
anything else so abuse control also covers unauthenticated traffic. Tenant
resolution runs only after identity verification because header/claim
conflict detection needs the verified claim. Any failure is terminal:
the request moves to REJECTED and never reaches the application.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from tenant_gate.common.exceptions import (
    DirectoryUnavailableError,
    RateLimitExceededError,
    TenantConflictError,
    TenantGateError,
)
from tenant_gate.common.schemas import ErrorResponse, RateLimitResponse
from tenant_gate.identity import IdentityVerifier, RequestIdentity
from tenant_gate.network import ClientIdentifier
from tenant_gate.ratelimit import FixedWindowRateLimiter
from tenant_gate.tenants.context import TenantContext
from tenant_gate.tenants.directory import TenantDirectory
from tenant_gate.tenants.resolver import ResolvedTenant, TenantResolver

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    START = "start"
    IDENTITY_VERIFIED = "identity_verified"
    TENANT_RESOLVED = "tenant_resolved"
    READY = "ready"
    REJECTED = "rejected"


@dataclass
class PipelineResult:
    state: PipelineState = PipelineState.START
    client_key: str = ""
    identity: RequestIdentity = field(default_factory=RequestIdentity.anonymous)
    context: Optional[TenantContext] = None
    resolved: Optional[ResolvedTenant] = None
    error: Optional[TenantGateError] = None


def is_excluded_path(path: str, excluded: list[str]) -> bool:
    lowered = path.lower()
    for prefix in excluded:
        prefix = prefix.lower()
        if lowered == prefix or lowered.startswith(prefix + "/"):
            return True
    return False


class RequestPipeline:
    """Runs the per-request trust and tenancy checks in order."""

    def __init__(
        self,
        client_identifier: ClientIdentifier,
        identity_verifier: IdentityVerifier,
        resolver: TenantResolver,
        directory: TenantDirectory,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        forwarded_header_name: str = "X-Forwarded-For",
        resolution_timeout: float = 5.0,
        excluded_paths: Optional[list[str]] = None,
    ):
        self.client_identifier = client_identifier
        self.identity_verifier = identity_verifier
        self.resolver = resolver
        self.directory = directory
        self.rate_limiter = rate_limiter
        self.forwarded_header_name = forwarded_header_name
        self.resolution_timeout = resolution_timeout
        self.excluded_paths = list(excluded_paths or [])

    def identify_client(self, request: Request) -> str:
        physical = request.client.host if request.client else None
        return self.client_identifier.identify(
            physical, request.headers.get(self.forwarded_header_name)
        )

    async def run(self, request: Request) -> PipelineResult:
        result = PipelineResult()
        path = request.url.path

        result.client_key = self.identify_client(request)
        if self.rate_limiter is not None:
            policy = self.rate_limiter.policy_for_path(path)
            decision = self.rate_limiter.hit(policy, result.client_key)
            if not decision.allowed:
                logger.info(
                    "Rate limit exceeded for policy %s",
                    policy,
                    extra={"client_key": result.client_key, "path": path},
                )
                return self._reject(result, RateLimitExceededError(policy, decision.retry_after))

        if is_excluded_path(path, self.excluded_paths):
            result.state = PipelineState.READY
            return result

        result.identity = await self.identity_verifier.verify(request)
        result.state = PipelineState.IDENTITY_VERIFIED

        try:
            resolved = await asyncio.wait_for(
                self.resolver.resolve(
                    request.url.hostname or request.headers.get("host"),
                    request.headers,
                    result.identity,
                    path,
                ),
                timeout=self.resolution_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Tenant resolution timed out", extra={"path": path})
            return self._reject(result, DirectoryUnavailableError("Tenant resolution timed out"))
        except (TenantConflictError, DirectoryUnavailableError) as exc:
            return self._reject(result, exc)

        context = TenantContext(self.directory)
        context.set(resolved.tenant_id, slug=resolved.slug, source=resolved.source)
        result.resolved = resolved
        result.context = context
        result.state = PipelineState.TENANT_RESOLVED

        logger.debug(
            "Tenant %s resolved from %s",
            resolved.tenant_id,
            resolved.source,
            extra={"tenant_id": resolved.tenant_id, "source": resolved.source, "path": path},
        )
        result.state = PipelineState.READY
        return result

    @staticmethod
    def _reject(result: PipelineResult, error: TenantGateError) -> PipelineResult:
        result.state = PipelineState.REJECTED
        result.error = error
        return result


def error_response(error: TenantGateError) -> Response:
    """Map a pipeline error to a generic client response.

    Bodies never name the tenants involved.
    """
    if isinstance(error, RateLimitExceededError):
        body = RateLimitResponse(retry_after_seconds=error.retry_after)
        return JSONResponse(
            body.model_dump(),
            status_code=429,
            headers={"Retry-After": str(error.retry_after)},
        )
    if isinstance(error, DirectoryUnavailableError):
        body = ErrorResponse(error="The service is temporarily unavailable.", code=error.code)
        return JSONResponse(body.model_dump(), status_code=503)
    body = ErrorResponse(error="Access denied", code="ACCESS_DENIED")
    return JSONResponse(body.model_dump(), status_code=403)


class TenantGateMiddleware(BaseHTTPMiddleware):
    """Runs the request pipeline and publishes its outcome on ``request.state``."""

    def __init__(self, app: ASGIApp, pipeline: Optional[RequestPipeline] = None):
        super().__init__(app)
        self._pipeline = pipeline

    @property
    def pipeline(self) -> RequestPipeline:
        if self._pipeline is None:
            from tenant_gate.deps import get_pipeline
            self._pipeline = get_pipeline()
        return self._pipeline

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        result = await self.pipeline.run(request)
        if result.state is PipelineState.REJECTED:
            return error_response(result.error)

        request.state.client_key = result.client_key
        request.state.identity = result.identity
        request.state.tenant_context = result.context
        request.state.resolved_tenant = result.resolved
        return await call_next(request)
