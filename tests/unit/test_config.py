"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from tenant_gate.common.config import DEFAULT_TRUSTED_PROXIES, TenantGateSettings


class TestSettings:
    def test_defaults(self):
        settings = TenantGateSettings()
        assert settings.default_tenant_id == 1
        assert settings.tenant_header_name == "X-Tenant-ID"
        assert settings.forwarded_header_name == "X-Forwarded-For"
        assert settings.trusted_proxies == DEFAULT_TRUSTED_PROXIES
        assert settings.tenant_cache_ttl == 600

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TENANT_GATE_DEFAULT_TENANT_ID", "4")
        monkeypatch.setenv("TENANT_GATE_TRUSTED_PROXIES", '["10.1.0.0/16"]')
        settings = TenantGateSettings()
        assert settings.default_tenant_id == 4
        assert settings.trusted_proxies == ["10.1.0.0/16"]

    def test_invalid_proxy_rejected(self):
        with pytest.raises(ValidationError):
            TenantGateSettings(trusted_proxies=["10.0.0.0/99"])


class TestProductionValidation:
    def test_catch_all_rejected_in_production(self):
        settings = TenantGateSettings(environment="production", trusted_proxies=["0.0.0.0/0"])
        with pytest.raises(RuntimeError, match="catch-all"):
            settings.validate_for_production()

    def test_catch_all_warns_in_development(self):
        settings = TenantGateSettings(trusted_proxies=["::/0"])
        with pytest.warns(UserWarning):
            settings.validate_for_production()

    def test_explicit_proxies_pass(self):
        settings = TenantGateSettings(environment="production", trusted_proxies=["10.0.0.5"])
        settings.validate_for_production()
