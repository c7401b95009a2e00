"""Tenant-Gate exception hierarchy."""


class TenantGateError(Exception):
    """Base exception for all Tenant-Gate errors."""

    def __init__(self, message: str = "", code: str = "TENANT_GATE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class TenantConflictError(TenantGateError):
    """Raised when the tenant header contradicts the verified tenant claim.

    Both values are kept for the audit log only; they must never be sent
    back to the client.
    """

    def __init__(self, header_tenant_id: int, claim_tenant_id: int):
        self.header_tenant_id = header_tenant_id
        self.claim_tenant_id = claim_tenant_id
        super().__init__("Tenant header conflicts with verified claim", code="TENANT_CONFLICT")


class DirectoryUnavailableError(TenantGateError):
    """Raised when the tenant directory cannot be reached or times out."""

    def __init__(self, message: str = "Tenant directory unavailable"):
        super().__init__(message, code="DIRECTORY_UNAVAILABLE")


class TenantNotResolvedError(TenantGateError):
    """Raised when a tenant context is read before resolution."""

    def __init__(self, message: str = "Tenant context has not been resolved"):
        super().__init__(message, code="TENANT_NOT_RESOLVED")


class TenantRequiredError(TenantGateError):
    """Raised when an endpoint demands an explicit tenant but got the default."""

    def __init__(self, message: str = "Tenant context required"):
        super().__init__(message, code="TENANT_REQUIRED")


class RateLimitExceededError(TenantGateError):
    """Raised when a client exceeds its rate-limit window."""

    def __init__(self, policy: str, retry_after: int):
        self.policy = policy
        self.retry_after = retry_after
        super().__init__("Rate limit exceeded", code="RATE_LIMITED")
