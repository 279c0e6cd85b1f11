"""Integration tests for tenant isolation across the webhook API.

Two tenants configure the same endpoint path with different credentials;
neither may see, change or authenticate against the other's data.
"""

from uuid import UUID

import pytest
from httpx import AsyncClient

BODY = {
    "name": "HR events",
    "endpoint_path": "/hr-events",
    "event_types": ["EmployeeHired"],
    "auth_method": "bearer",
    "fields": ["EventType"],
}


async def setup_tenant(client: AsyncClient, tenant_id: UUID, token: str) -> tuple[int, int]:
    """Create a configuration and one delivered event; return their ids."""
    created = await client.post(
        "/v1/webhooks/configurations",
        json={**BODY, "auth_config": {"token": token}},
        headers={"X-Tenant-ID": str(tenant_id)},
    )
    assert created.status_code == 201
    delivered = await client.post(
        f"/v1/hooks/{tenant_id}/hr-events",
        json={"EventType": "EmployeeHired"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert delivered.status_code == 202
    return created.json()["id"], delivered.json()["event_id"]


@pytest.mark.asyncio
class TestTenantIsolation:
    """Tenant scoping of configurations, deliveries and events."""

    async def test_same_path_in_two_tenants(
        self, test_client: AsyncClient, tenant_id: UUID, other_tenant_id: UUID
    ):
        """Test each tenant's path authenticates only its own token."""
        await setup_tenant(test_client, tenant_id, "token-a")
        await setup_tenant(test_client, other_tenant_id, "token-b")

        crossed = await test_client.post(
            f"/v1/hooks/{tenant_id}/hr-events",
            json={"EventType": "EmployeeHired"},
            headers={"Authorization": "Bearer token-b"},
        )
        assert crossed.status_code == 401

    async def test_events_are_invisible_across_tenants(
        self, test_client: AsyncClient, tenant_id: UUID, other_tenant_id: UUID
    ):
        """Test listing, detail and retry are scoped to the caller's tenant."""
        _, event_a = await setup_tenant(test_client, tenant_id, "token-a")
        await setup_tenant(test_client, other_tenant_id, "token-b")
        as_other = {"X-Tenant-ID": str(other_tenant_id)}

        listing = (await test_client.get("/v1/webhooks/events", headers=as_other)).json()
        assert listing["total"] == 1
        assert event_a not in [e["id"] for e in listing["events"]]

        detail = await test_client.get(f"/v1/webhooks/events/{event_a}", headers=as_other)
        assert detail.status_code == 404

        retry = await test_client.post(f"/v1/webhooks/events/{event_a}/retry", headers=as_other)
        assert retry.status_code == 404

    async def test_configurations_are_invisible_across_tenants(
        self, test_client: AsyncClient, tenant_id: UUID, other_tenant_id: UUID
    ):
        """Test another tenant cannot read, update, deactivate or test a configuration."""
        config_a, _ = await setup_tenant(test_client, tenant_id, "token-a")
        as_other = {"X-Tenant-ID": str(other_tenant_id)}
        path = f"/v1/webhooks/configurations/{config_a}"

        assert (await test_client.get(path, headers=as_other)).status_code == 404
        patched = await test_client.patch(path, json={"name": "Taken"}, headers=as_other)
        assert patched.status_code == 404
        assert (await test_client.delete(path, headers=as_other)).status_code == 404
        assert (await test_client.post(f"{path}/test", headers=as_other)).status_code == 404

        own = await test_client.get(path, headers={"X-Tenant-ID": str(tenant_id)})
        assert own.json()["name"] == "HR events"
        assert own.json()["is_active"] is True

    async def test_stats_are_scoped(
        self, test_client: AsyncClient, tenant_id: UUID, other_tenant_id: UUID
    ):
        """Test statistics count only the caller's events."""
        await setup_tenant(test_client, tenant_id, "token-a")
        await setup_tenant(test_client, other_tenant_id, "token-b")
        await test_client.post(
            f"/v1/hooks/{other_tenant_id}/hr-events",
            json={"EventType": "EmployeeHired"},
            headers={"Authorization": "Bearer token-b"},
        )

        stats_a = await test_client.get(
            "/v1/webhooks/events/stats", headers={"X-Tenant-ID": str(tenant_id)}
        )
        stats_b = await test_client.get(
            "/v1/webhooks/events/stats", headers={"X-Tenant-ID": str(other_tenant_id)}
        )
        assert stats_a.json()["overview"]["total_events"] == 1
        assert stats_b.json()["overview"]["total_events"] == 2
