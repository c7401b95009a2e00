"""Shared Pydantic schemas for Tenant-Gate."""

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "tenant-gate"


class ErrorResponse(BaseModel):
    error: str
    code: str


class RateLimitResponse(BaseModel):
    error: str = "Too many requests"
    message: str = "Rate limit exceeded. Please try again later."
    retry_after_seconds: int


class TenantContextResponse(BaseModel):
    tenant_id: int
    tenant_slug: Optional[str] = None
    source: str
    client_key: str
