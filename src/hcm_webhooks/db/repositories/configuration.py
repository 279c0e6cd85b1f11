"""Repository for webhook configuration rows."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from hcm_webhooks.db.models import WebhookConfigurationRecord

from .base import TenantScopedRepository


class ConfigurationRepository(TenantScopedRepository[WebhookConfigurationRecord]):
    """Tenant-scoped queries over ``webhook_configurations``."""

    async def find_by_paths(
        self, tenant_id: UUID, paths: Sequence[str]
    ) -> WebhookConfigurationRecord | None:
        """Find the tenant's configuration whose endpoint path is any of ``paths``.

        Exact matches on the first candidate win over later candidates.
        """
        stmt = select(WebhookConfigurationRecord).where(
            *self.owned_by(tenant_id),
            WebhookConfigurationRecord.endpoint_path.in_(list(paths)),
        )
        result = await self.db.execute(stmt)
        records = {record.endpoint_path: record for record in result.scalars().all()}
        for path in paths:
            if path in records:
                return records[path]
        return None

    async def list_for_tenant(self, tenant_id: UUID) -> list[WebhookConfigurationRecord]:
        """List a tenant's configurations, newest first."""
        stmt = (
            select(WebhookConfigurationRecord)
            .where(*self.owned_by(tenant_id))
            .order_by(
                WebhookConfigurationRecord.created_at.desc(),
                WebhookConfigurationRecord.id.desc(),
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def path_exists(self, tenant_id: UUID, endpoint_path: str) -> bool:
        """Check whether the tenant already uses ``endpoint_path``."""
        stmt = select(WebhookConfigurationRecord.id).where(
            *self.owned_by(tenant_id),
            WebhookConfigurationRecord.endpoint_path == endpoint_path,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None
