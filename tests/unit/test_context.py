"""Tests for the request-scoped tenant context."""

import pytest

from tenant_gate.common.exceptions import TenantNotResolvedError
from tenant_gate.tenants.context import TenantContext, parse_features


@pytest.fixture
def context(directory):
    return TenantContext(directory)


class TestTenantId:
    def test_unresolved_raises(self, context):
        assert context.is_resolved is False
        with pytest.raises(TenantNotResolvedError):
            context.tenant_id

    def test_set(self, context):
        context.set(5, source="path")
        assert context.is_resolved
        assert context.tenant_id == 5
        assert context.source == "path"


class TestSlug:
    async def test_slug_from_resolution_needs_no_lookup(self, context, directory):
        context.set(5, slug="acme")
        assert await context.tenant_slug() == "acme"
        assert directory.calls == []

    async def test_slug_loaded_lazily(self, context, directory):
        context.set(5)
        assert await context.tenant_slug() == "acme"
        assert await context.tenant_slug() == "acme"
        assert directory.calls == [("id", 5)]

    async def test_slug_for_missing_tenant(self, context):
        context.set(404)
        assert await context.tenant_slug() is None


class TestSettings:
    async def test_not_loaded_at_set(self, context, directory):
        context.set(5)
        assert directory.calls == []

    async def test_get_setting(self, context):
        context.set(5)
        assert await context.get_setting("currency") == "hours"
        assert await context.get_setting("missing") is None
        assert await context.get_setting("missing", "fallback") == "fallback"

    async def test_typed_read(self, context):
        context.set(5)
        assert await context.get_setting("max_listings", cast=int) == 50
        assert await context.get_setting("currency", default=0, cast=int) == 0

    async def test_loaded_once(self, context, directory):
        context.set(5)
        await context.get_setting("currency")
        await context.get_setting("max_listings")
        assert directory.calls.count(("settings", 5)) == 1

    async def test_snapshot_ignores_later_changes(self, context, directory):
        context.set(5)
        assert await context.get_setting("currency") == "hours"
        directory.settings[5]["currency"] = "credits"
        assert await context.get_setting("currency") == "hours"

    async def test_settings_copy_cannot_mutate_snapshot(self, context):
        context.set(5)
        snapshot = await context.settings()
        snapshot["currency"] = "tampered"
        assert await context.get_setting("currency") == "hours"

    async def test_unresolved_settings_raise(self, context):
        with pytest.raises(TenantNotResolvedError):
            await context.get_setting("currency")


class TestFeatures:
    async def test_has_feature_case_insensitive(self, context):
        context.set(5)
        assert await context.has_feature("listings") is True
        assert await context.has_feature("MESSAGES") is True
        assert await context.has_feature("groups") is False

    async def test_malformed_blob_means_no_features(self, context):
        context.set(9)
        assert await context.has_feature("listings") is False
        assert await context.features() == frozenset()

    async def test_missing_blob(self, context):
        context.set(2)
        assert await context.features() == frozenset()

    async def test_features_loaded_once(self, context, directory):
        context.set(5)
        await context.has_feature("listings")
        directory.features[5] = '["groups"]'
        assert await context.has_feature("groups") is False
        assert directory.calls.count(("features", 5)) == 1


class TestReset:
    async def test_set_again_invalidates_cached_state(self, context, directory):
        context.set(5, slug="acme")
        assert await context.has_feature("listings")
        assert await context.get_setting("currency") == "hours"

        context.set(2)
        assert context.tenant_id == 2
        assert await context.has_feature("listings") is False
        assert await context.get_setting("currency") is None
        assert await context.tenant_slug() == "beta"


@pytest.mark.parametrize(
    "blob,expected",
    [
        (None, frozenset()),
        ("", frozenset()),
        ('["A", "b"]', frozenset({"a", "b"})),
        ('["a", 1, null, "c"]', frozenset({"a", "c"})),
        ('{"a": true}', frozenset()),
        ('"listings"', frozenset()),
        ("[unterminated", frozenset()),
    ],
)
def test_parse_features(blob, expected):
    assert parse_features(blob) == expected
