"""Tenant-Gate: request-time tenant resolution and trust-boundary client identification."""

from tenant_gate.identity import RequestIdentity
from tenant_gate.network import ClientIdentifier, TrustedProxyNetwork, is_in_network
from tenant_gate.tenants.context import TenantContext
from tenant_gate.tenants.resolver import ResolvedTenant, TenantResolver

__all__ = [
    "RequestIdentity",
    "ClientIdentifier",
    "TrustedProxyNetwork",
    "is_in_network",
    "TenantContext",
    "ResolvedTenant",
    "TenantResolver",
]
__version__ = "0.1.0"
