"""Tests for the webhook configuration store."""

import json

import pytest
from sqlalchemy import select

from hcm_webhooks.core.exceptions import (
    ConfigurationNotFoundError,
    ConflictError,
    ValidationError,
)
from hcm_webhooks.db.models import WebhookConfigurationRecord
from hcm_webhooks.webhooks.config_store import ConfigurationCache, ConfigurationStore
from hcm_webhooks.webhooks.types import (
    AuthBasic,
    AuthBearer,
    ConfigurationCreate,
    ConfigurationUpdate,
)

# =============================================================================
# Create
# =============================================================================


class TestCreate:
    """Tests for ConfigurationStore.create."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, config_store, tenant_id):
        configuration_id = await config_store.create(
            tenant_id,
            ConfigurationCreate(
                name="HR events",
                endpoint_path="/hr-events",
                event_types=["EmployeeHired"],
                auth_method="bearer",
                auth_config={"token": "abc123"},
                fields=["EventType"],
                created_by="admin@example.com",
            ),
        )

        configuration = await config_store.get(tenant_id, configuration_id)
        assert configuration.id == configuration_id
        assert configuration.tenant_id == tenant_id
        assert configuration.endpoint_path == "/hr-events"
        assert configuration.event_types == ["EmployeeHired"]
        assert configuration.fields == ["EventType"]
        assert configuration.is_active is True
        assert configuration.created_by == "admin@example.com"
        assert isinstance(configuration.auth, AuthBearer)
        assert configuration.auth.token.get_secret_value() == "abc123"

    @pytest.mark.asyncio
    async def test_path_without_separator_is_normalized(self, config_store, tenant_id):
        configuration_id = await config_store.create(
            tenant_id,
            ConfigurationCreate(name="HR", endpoint_path="hr-events", auth_method="none"),
        )
        configuration = await config_store.get(tenant_id, configuration_id)
        assert configuration.endpoint_path == "/hr-events"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "missing",
        ["name", "endpoint_path", "auth_method"],
    )
    async def test_required_values(self, config_store, tenant_id, missing):
        values = {"name": "HR", "endpoint_path": "/hr", "auth_method": "none"}
        values[missing] = None
        with pytest.raises(
            ValidationError, match="name, endpoint_path, and auth_method are required"
        ):
            await config_store.create(tenant_id, ConfigurationCreate(**values))

    @pytest.mark.asyncio
    async def test_auth_parameters_are_validated(self, config_store, tenant_id):
        with pytest.raises(ValidationError, match="Bearer authentication requires token"):
            await config_store.create(
                tenant_id,
                ConfigurationCreate(name="HR", endpoint_path="/hr", auth_method="bearer"),
            )
        assert await config_store.list_by_tenant(tenant_id) == []

    @pytest.mark.asyncio
    async def test_unsupported_method(self, config_store, tenant_id):
        with pytest.raises(ValidationError, match="Unsupported authentication method"):
            await config_store.create(
                tenant_id,
                ConfigurationCreate(name="HR", endpoint_path="/hr", auth_method="digest"),
            )

    @pytest.mark.asyncio
    async def test_duplicate_path_conflicts(self, create_configuration, tenant_id):
        await create_configuration(tenant_id)
        with pytest.raises(ConflictError):
            await create_configuration(tenant_id, name="Second")

    @pytest.mark.asyncio
    async def test_duplicate_path_after_normalization_conflicts(
        self, create_configuration, tenant_id
    ):
        await create_configuration(tenant_id, endpoint_path="/hr-events")
        with pytest.raises(ConflictError):
            await create_configuration(tenant_id, endpoint_path="hr-events")

    @pytest.mark.asyncio
    async def test_same_path_in_other_tenant_is_allowed(
        self, create_configuration, tenant_id, other_tenant_id
    ):
        first = await create_configuration(tenant_id)
        second = await create_configuration(other_tenant_id)
        assert first.id != second.id
        assert first.endpoint_path == second.endpoint_path


# =============================================================================
# Lookup
# =============================================================================


class TestLookup:
    """Tests for resolving and listing configurations."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["hr-events", "/hr-events"])
    async def test_find_with_or_without_separator(
        self, create_configuration, config_store, tenant_id, path
    ):
        created = await create_configuration(tenant_id)
        found = await config_store.find_by_tenant_and_path(tenant_id, path)
        assert found is not None
        assert found.id == created.id

    @pytest.mark.asyncio
    async def test_nested_path(self, create_configuration, config_store, tenant_id):
        created = await create_configuration(tenant_id, endpoint_path="/acme/hr")
        found = await config_store.find_by_tenant_and_path(tenant_id, "acme/hr")
        assert found is not None
        assert found.id == created.id

    @pytest.mark.asyncio
    async def test_unknown_path(self, create_configuration, config_store, tenant_id):
        await create_configuration(tenant_id)
        assert await config_store.find_by_tenant_and_path(tenant_id, "payroll") is None

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_resolve(
        self, create_configuration, config_store, tenant_id, other_tenant_id
    ):
        await create_configuration(tenant_id)
        assert await config_store.find_by_tenant_and_path(other_tenant_id, "hr-events") is None

    @pytest.mark.asyncio
    async def test_get_other_tenant_raises_not_found(
        self, create_configuration, config_store, tenant_id, other_tenant_id
    ):
        created = await create_configuration(tenant_id)
        with pytest.raises(ConfigurationNotFoundError):
            await config_store.get(other_tenant_id, created.id)

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped_and_newest_first(
        self, create_configuration, config_store, tenant_id, other_tenant_id
    ):
        first = await create_configuration(tenant_id, endpoint_path="/one")
        second = await create_configuration(tenant_id, endpoint_path="/two")
        await create_configuration(other_tenant_id, endpoint_path="/three")

        listed = await config_store.list_by_tenant(tenant_id)
        assert [c.id for c in listed] == [second.id, first.id]


# =============================================================================
# Update and Deactivate
# =============================================================================


class TestUpdate:
    """Tests for partial updates and deactivation."""

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_values(
        self, create_configuration, config_store, tenant_id
    ):
        created = await create_configuration(tenant_id)
        updated = await config_store.update(
            created.id,
            tenant_id,
            ConfigurationUpdate(event_types=["EmployeeTransferred"], updated_by="ops"),
        )
        assert updated.event_types == ["EmployeeTransferred"]
        assert updated.name == created.name
        assert updated.fields == created.fields
        assert updated.updated_by == "ops"
        assert isinstance(updated.auth, AuthBearer)

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, create_configuration, config_store, tenant_id):
        created = await create_configuration(tenant_id)
        with pytest.raises(ValidationError, match="No fields to update"):
            await config_store.update(created.id, tenant_id, ConfigurationUpdate(updated_by="x"))

    @pytest.mark.asyncio
    async def test_change_auth_method(self, create_configuration, config_store, tenant_id):
        created = await create_configuration(tenant_id)
        updated = await config_store.update(
            created.id,
            tenant_id,
            ConfigurationUpdate(
                auth_method="basic", auth_config={"username": "hcm", "password": "pw"}
            ),
        )
        assert isinstance(updated.auth, AuthBasic)
        assert updated.auth_method == "basic"

    @pytest.mark.asyncio
    async def test_change_auth_method_requires_parameters(
        self, create_configuration, config_store, tenant_id
    ):
        created = await create_configuration(tenant_id)
        with pytest.raises(ValidationError, match="auth_config is required"):
            await config_store.update(
                created.id, tenant_id, ConfigurationUpdate(auth_method="basic")
            )

    @pytest.mark.asyncio
    async def test_rotate_token_for_current_method(
        self, create_configuration, config_store, tenant_id
    ):
        created = await create_configuration(tenant_id)
        updated = await config_store.update(
            created.id, tenant_id, ConfigurationUpdate(auth_config={"token": "rotated"})
        )
        assert updated.auth.token.get_secret_value() == "rotated"

    @pytest.mark.asyncio
    async def test_update_other_tenant_raises_not_found(
        self, create_configuration, config_store, tenant_id, other_tenant_id
    ):
        created = await create_configuration(tenant_id)
        with pytest.raises(ConfigurationNotFoundError):
            await config_store.update(
                created.id, other_tenant_id, ConfigurationUpdate(name="stolen")
            )
        assert (await config_store.get(tenant_id, created.id)).name == created.name

    @pytest.mark.asyncio
    async def test_deactivate_keeps_configuration(
        self, create_configuration, config_store, tenant_id
    ):
        created = await create_configuration(tenant_id)
        deactivated = await config_store.deactivate(created.id, tenant_id, updated_by="ops")
        assert deactivated.is_active is False

        found = await config_store.find_by_tenant_and_path(tenant_id, "hr-events")
        assert found is not None
        assert found.is_active is False


# =============================================================================
# Cache and Encryption
# =============================================================================


class TestCaching:
    """Tests for path lookup caching."""

    @pytest.mark.asyncio
    async def test_update_invalidates_cached_lookup(
        self, create_configuration, config_store, tenant_id
    ):
        created = await create_configuration(tenant_id)
        assert (await config_store.find_by_tenant_and_path(tenant_id, "hr-events")).is_active

        await config_store.update(created.id, tenant_id, ConfigurationUpdate(is_active=False))

        found = await config_store.find_by_tenant_and_path(tenant_id, "hr-events")
        assert found.is_active is False

    @pytest.mark.asyncio
    async def test_lookup_is_served_from_cache(
        self, create_configuration, config_store, tenant_id
    ):
        await create_configuration(tenant_id)
        first = await config_store.find_by_tenant_and_path(tenant_id, "hr-events")
        assert config_store.cache.get(tenant_id, "hr-events") == first

    def test_zero_ttl_disables_cache(self, tenant_id):
        cache = ConfigurationCache(ttl_seconds=0)
        cache.put(tenant_id, "/hr", object())
        assert cache.get(tenant_id, "/hr") is None

    def test_invalidate_only_affects_one_tenant(self, tenant_id, other_tenant_id):
        cache = ConfigurationCache(ttl_seconds=60)
        marker = object()
        cache.put(tenant_id, "/hr", marker)
        cache.put(other_tenant_id, "/hr", marker)

        cache.invalidate_tenant(tenant_id)

        assert cache.get(tenant_id, "/hr") is None
        assert cache.get(other_tenant_id, "/hr") is marker


class TestCredentialsAtRest:
    """Tests for how authentication parameters are stored."""

    @pytest.mark.asyncio
    async def test_parameters_are_encrypted(
        self, create_configuration, services, tenant_id
    ):
        created = await create_configuration(tenant_id)
        async with services.session_factory() as session:
            result = await session.execute(
                select(WebhookConfigurationRecord.settings).where(
                    WebhookConfigurationRecord.id == created.id
                )
            )
            stored = result.scalar_one()

        document = json.loads(stored)
        assert "abc123" not in stored
        assert "auth" not in document
        assert document["auth_encrypted"]
        assert document["schema_version"] == 1
        assert document["event_types"] == created.event_types

    @pytest.mark.asyncio
    async def test_plain_storage_without_key(self, services, tenant_id):
        store = ConfigurationStore(services.session_factory)
        configuration_id = await store.create(
            tenant_id,
            ConfigurationCreate(
                name="HR",
                endpoint_path="/plain",
                auth_method="bearer",
                auth_config={"token": "abc123"},
            ),
        )
        configuration = await store.get(tenant_id, configuration_id)
        assert configuration.auth.token.get_secret_value() == "abc123"
