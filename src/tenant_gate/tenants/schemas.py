"""Pydantic schemas for tenant provisioning input."""

from typing import Optional

from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    domain: Optional[str] = Field(default=None, max_length=255)
    features: list[str] = []
    settings: dict[str, str] = {}
