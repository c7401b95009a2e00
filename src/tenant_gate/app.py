"""FastAPI application factory for Tenant-Gate."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tenant_gate.common.config import get_settings
from tenant_gate.common.exceptions import (
    TenantGateError,
    TenantNotResolvedError,
    TenantRequiredError,
)
from tenant_gate.common.logging import setup_logging
from tenant_gate.common.schemas import ErrorResponse, HealthResponse
from tenant_gate.pipeline import TenantGateMiddleware, error_response

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from tenant_gate.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(TenantGateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TenantGateError)
    async def tenant_gate_error_handler(request: Request, exc: TenantGateError):
        if isinstance(exc, TenantRequiredError):
            body = ErrorResponse(error="Tenant context required", code=exc.code)
            return JSONResponse(body.model_dump(), status_code=400)
        if isinstance(exc, TenantNotResolvedError):
            logger.error("Handler reached without tenant context", extra={"path": request.url.path})
            body = ErrorResponse(error="An unexpected error occurred.", code=exc.code)
            return JSONResponse(body.model_dump(), status_code=500)
        return error_response(exc)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    from tenant_gate.tenants.router import router as tenant_router
    app.include_router(tenant_router)

    return app
