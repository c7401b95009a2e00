"""Verified request identity consumed by tenant resolution.

Signature and expiry checks happen upstream; by the time claims reach this
module they are trusted as-is.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from starlette.requests import Request

CLAIMS_SCOPE_KEY = "auth_claims"

# Tenant ids are stored as signed 64-bit integers.
MAX_TENANT_ID = 2**63 - 1
_MAX_TENANT_ID_DIGITS = len(str(MAX_TENANT_ID))


def parse_tenant_id(value: Any) -> Optional[int]:
    """Parse a tenant id from a header or claim value.

    Accepts ints and ASCII-digit strings in ``1..MAX_TENANT_ID``; anything
    else is treated as absent.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()) or len(value) > _MAX_TENANT_ID_DIGITS:
            return None
        value = int(value)
    if isinstance(value, int) and 1 <= value <= MAX_TENANT_ID:
        return value
    return None


@dataclass(frozen=True)
class RequestIdentity:
    authenticated: bool = False
    tenant_id_claim: Optional[int] = None
    raw_claims: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def anonymous(cls) -> "RequestIdentity":
        return cls()

    @classmethod
    def from_claims(
        cls, claims: Mapping[str, Any], tenant_claim: str = "tenant_id"
    ) -> "RequestIdentity":
        """Build an authenticated identity from verified token claims.

        A tenant claim that is not an integer is treated as absent.
        """
        return cls(
            authenticated=True,
            tenant_id_claim=parse_tenant_id(claims.get(tenant_claim)),
            raw_claims=dict(claims),
        )

    @property
    def subject(self) -> Optional[str]:
        sub = self.raw_claims.get("sub")
        return str(sub) if sub is not None else None


class IdentityVerifier(Protocol):
    async def verify(self, request: Request) -> RequestIdentity: ...


class ScopeIdentityVerifier:
    """Reads claims that an upstream auth layer stored on the ASGI scope."""

    def __init__(self, tenant_claim: str = "tenant_id", scope_key: str = CLAIMS_SCOPE_KEY):
        self.tenant_claim = tenant_claim
        self.scope_key = scope_key

    async def verify(self, request: Request) -> RequestIdentity:
        claims = request.scope.get(self.scope_key)
        if not claims:
            return RequestIdentity.anonymous()
        return RequestIdentity.from_claims(claims, tenant_claim=self.tenant_claim)
