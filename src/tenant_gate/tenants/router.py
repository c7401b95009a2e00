"""Tenant context endpoints for the current request."""

from fastapi import APIRouter, Depends, HTTPException, Request

from tenant_gate.common.schemas import TenantContextResponse
from tenant_gate.deps import (
    current_tenant,
    current_tenant_has_feature,
    current_tenant_setting,
    require_explicit_tenant,
)
from tenant_gate.tenants.context import TenantContext

router = APIRouter(tags=["tenant"])


async def _describe(request: Request, context: TenantContext) -> TenantContextResponse:
    return TenantContextResponse(
        tenant_id=context.tenant_id,
        tenant_slug=await context.tenant_slug(),
        source=context.source or "",
        client_key=request.state.client_key,
    )


@router.get("/tenant", response_model=TenantContextResponse)
async def get_current_tenant(request: Request, context: TenantContext = Depends(current_tenant)):
    return await _describe(request, context)


# Link-style routing: "/acme/tenant" resolves through the path slug.
@router.get("/{tenant_slug}/tenant", response_model=TenantContextResponse)
async def get_current_tenant_by_path(
    tenant_slug: str, request: Request, context: TenantContext = Depends(current_tenant)
):
    return await _describe(request, context)


@router.get("/tenant/required", response_model=TenantContextResponse)
async def get_explicit_tenant(
    request: Request, context: TenantContext = Depends(require_explicit_tenant)
):
    return await _describe(request, context)


@router.get("/tenant/features/{name}")
async def get_feature(name: str, context: TenantContext = Depends(current_tenant)):
    return {"feature": name, "enabled": await current_tenant_has_feature(context, name)}


@router.get("/tenant/settings/{key}")
async def get_setting(key: str, context: TenantContext = Depends(current_tenant)):
    value = await current_tenant_setting(context, key)
    if value is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "value": value}
