"""Tenant-Gate configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Private ranges and loopback, matching a stock Docker/Kubernetes deployment.
DEFAULT_TRUSTED_PROXIES = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.1",
    "::1",
]

_PERMISSIVE_NETWORKS = {"0.0.0.0/0", "::/0"}


class TenantGateSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TENANT_GATE_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/tenant_gate.db"

    # API
    api_title: str = "Tenant-Gate"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Tenant resolution
    default_tenant_id: int = 1
    tenant_header_name: str = "X-Tenant-ID"
    tenant_claim_name: str = "tenant_id"
    tenant_cache_ttl: int = 600  # seconds
    tenant_cache_size: int = 4096
    resolution_timeout: float = 5.0  # seconds

    # Paths that carry no tenant scope (health probes, API docs)
    excluded_paths: list[str] = [
        "/health",
        "/health/ready",
        "/health/live",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]

    # Trust boundary
    forwarded_header_name: str = "X-Forwarded-For"
    trusted_proxies: list[str] = list(DEFAULT_TRUSTED_PROXIES)

    # Rate limiting: policy -> (permit limit, window seconds)
    rate_limit_enabled: bool = True
    rate_limit_policies: dict[str, tuple[int, int]] = {
        "general": (100, 60),
        "auth": (5, 60),
        "ai": (10, 60),
    }
    rate_limit_path_policies: dict[str, str] = {
        "/api/auth": "auth",
        "/api/ai": "ai",
    }

    @field_validator("trusted_proxies")
    @classmethod
    def _validate_trusted_proxies(cls, value: list[str]) -> list[str]:
        from tenant_gate.network import TrustedProxyNetwork

        for entry in value:
            TrustedProxyNetwork.parse(entry)
        return value

    def validate_for_production(self) -> None:
        """Raise if the trust boundary is wide open outside development."""
        permissive = [p for p in self.trusted_proxies if p.strip() in _PERMISSIVE_NETWORKS]

        if self.environment != "development" and permissive:
            raise RuntimeError(
                f"Trusted proxy list in '{self.environment}' environment contains "
                f"catch-all networks: {', '.join(permissive)}. Any client could then "
                "spoof TENANT_GATE_FORWARDED_HEADER_NAME. List your proxy addresses "
                "explicitly in TENANT_GATE_TRUSTED_PROXIES."
            )

        if permissive:
            warnings.warn(
                "Trusting forwarded-address headers from every peer — set "
                "TENANT_GATE_TRUSTED_PROXIES for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> TenantGateSettings:
    settings = TenantGateSettings()
    settings.validate_for_production()
    return settings
