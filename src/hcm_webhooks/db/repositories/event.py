"""Repository for webhook event rows.

State transitions are single conditional UPDATE statements; the affected
row count tells the caller whether the transition actually happened.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, case, func, select, update

from hcm_webhooks.db.models import WebhookConfigurationRecord, WebhookEventRecord
from hcm_webhooks.db.models.base import utc_now

from .base import TenantScopedRepository

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


class EventRepository(TenantScopedRepository[WebhookEventRecord]):
    """Tenant-scoped queries and transitions over ``webhook_events``."""

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_with_configuration(
        self, tenant_id: UUID, event_id: int
    ) -> tuple[WebhookEventRecord, str | None, str | None] | None:
        """Get an event plus its configuration's name and endpoint path."""
        stmt = (
            select(
                WebhookEventRecord,
                WebhookConfigurationRecord.name,
                WebhookConfigurationRecord.endpoint_path,
            )
            .outerjoin(
                WebhookConfigurationRecord,
                (WebhookConfigurationRecord.id == WebhookEventRecord.configuration_id)
                & (WebhookConfigurationRecord.tenant_id == WebhookEventRecord.tenant_id),
            )
            .where(*self.owned_by(tenant_id, event_id))
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1], row[2]

    async def get_status(self, tenant_id: UUID, event_id: int) -> str | None:
        """Current processing status, or None when the event does not exist."""
        stmt = select(WebhookEventRecord.processing_status).where(
            *self.owned_by(tenant_id, event_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _filter_conditions(
        self,
        tenant_id: UUID,
        *,
        configuration_id: int | None = None,
        event_type: str | None = None,
        status: str | None = None,
        auth_valid: bool | None = None,
    ) -> list[ColumnElement[bool]]:
        conditions = self.owned_by(tenant_id)
        if configuration_id is not None:
            conditions.append(WebhookEventRecord.configuration_id == configuration_id)
        if event_type is not None:
            conditions.append(WebhookEventRecord.event_type == event_type)
        if status is not None:
            conditions.append(WebhookEventRecord.processing_status == status)
        if auth_valid is not None:
            conditions.append(WebhookEventRecord.auth_valid == auth_valid)
        return conditions

    async def list_filtered(
        self,
        tenant_id: UUID,
        *,
        limit: int,
        offset: int,
        **filters: Any,
    ) -> list[tuple[WebhookEventRecord, str | None, str | None]]:
        """List events newest first with their configuration name and path."""
        stmt = (
            select(
                WebhookEventRecord,
                WebhookConfigurationRecord.name,
                WebhookConfigurationRecord.endpoint_path,
            )
            .outerjoin(
                WebhookConfigurationRecord,
                WebhookConfigurationRecord.id == WebhookEventRecord.configuration_id,
            )
            .where(*self._filter_conditions(tenant_id, **filters))
            .order_by(WebhookEventRecord.received_at.desc(), WebhookEventRecord.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def count_filtered(self, tenant_id: UUID, **filters: Any) -> int:
        """Count events matching the same filters as :meth:`list_filtered`."""
        stmt = select(func.count(WebhookEventRecord.id)).where(
            *self._filter_conditions(tenant_id, **filters)
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    # =========================================================================
    # Statistics
    # =========================================================================

    async def overview(
        self, tenant_id: UUID, configuration_id: int | None = None
    ) -> dict[str, Any]:
        """Totals by status and authentication outcome plus average attempts."""

        def count_where(condition: ColumnElement[bool]):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        status = WebhookEventRecord.processing_status
        stmt = select(
            func.count(WebhookEventRecord.id).label("total_events"),
            count_where(status == COMPLETED).label("completed"),
            count_where(status == FAILED).label("failed"),
            count_where(status == PENDING).label("pending"),
            count_where(status == PROCESSING).label("processing"),
            count_where(WebhookEventRecord.auth_valid.is_(True)).label("auth_valid"),
            count_where(WebhookEventRecord.auth_valid.is_(False)).label("auth_invalid"),
            func.avg(WebhookEventRecord.processing_attempts).label("average_attempts"),
        ).where(*self._filter_conditions(tenant_id, configuration_id=configuration_id))
        result = await self.db.execute(stmt)
        return dict(result.one()._mapping)

    async def event_type_counts(
        self, tenant_id: UUID, configuration_id: int | None = None
    ) -> list[tuple[str, int]]:
        """Event counts grouped by type, most frequent first."""
        count_col = func.count(WebhookEventRecord.id).label("count")
        stmt = (
            select(WebhookEventRecord.event_type, count_col)
            .where(*self._filter_conditions(tenant_id, configuration_id=configuration_id))
            .group_by(WebhookEventRecord.event_type)
            .order_by(count_col.desc(), WebhookEventRecord.event_type)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def received_since(
        self, tenant_id: UUID, since: datetime, configuration_id: int | None = None
    ) -> list[datetime]:
        """Receive timestamps of events newer than ``since``."""
        stmt = select(WebhookEventRecord.received_at).where(
            *self._filter_conditions(tenant_id, configuration_id=configuration_id),
            WebhookEventRecord.received_at >= since,
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # =========================================================================
    # State transitions
    # =========================================================================

    async def _transition(self, *conditions: ColumnElement[bool], **values: Any) -> int:
        stmt = (
            update(WebhookEventRecord)
            .where(*conditions)
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0

    async def claim(self, tenant_id: UUID, event_id: int) -> int | None:
        """Move ``pending`` to ``processing`` and count the attempt.

        Returns:
            The new attempt number for the single caller whose update
            matched, None for everyone else
        """
        now = utc_now()
        stmt = (
            update(WebhookEventRecord)
            .where(
                *self.owned_by(tenant_id, event_id),
                WebhookEventRecord.processing_status == PENDING,
            )
            .values(
                processing_status=PROCESSING,
                processing_attempts=WebhookEventRecord.processing_attempts + 1,
                processing_started_at=now,
                processing_completed_at=None,
                processing_error=None,
                updated_at=now,
            )
            .returning(WebhookEventRecord.processing_attempts)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        attempt = result.scalar_one_or_none()
        await self.db.commit()
        return attempt

    def _claimed_by(
        self, tenant_id: UUID, event_id: int, attempt: int
    ) -> list[ColumnElement[bool]]:
        # A run may only finish the attempt it claimed
        return [
            *self.owned_by(tenant_id, event_id),
            WebhookEventRecord.processing_status == PROCESSING,
            WebhookEventRecord.processing_attempts == attempt,
        ]

    async def mark_completed(self, tenant_id: UUID, event_id: int, attempt: int) -> bool:
        """Move ``processing`` to ``completed`` for the run holding ``attempt``."""
        rows = await self._transition(
            *self._claimed_by(tenant_id, event_id, attempt),
            processing_status=COMPLETED,
            processing_completed_at=utc_now(),
            processing_error=None,
        )
        return rows == 1

    async def mark_failed(
        self, tenant_id: UUID, event_id: int, attempt: int, error: str
    ) -> bool:
        """Move ``processing`` to ``failed`` with an operator-facing message."""
        rows = await self._transition(
            *self._claimed_by(tenant_id, event_id, attempt),
            processing_status=FAILED,
            processing_error=error,
        )
        return rows == 1

    async def reset_for_retry(self, tenant_id: UUID, event_id: int) -> bool:
        """Reset any non-processing event to ``pending``, keeping its attempt count."""
        rows = await self._transition(
            *self.owned_by(tenant_id, event_id),
            WebhookEventRecord.processing_status != PROCESSING,
            processing_status=PENDING,
            processing_started_at=None,
            processing_completed_at=None,
            processing_error=None,
        )
        return rows == 1

    async def fail_stuck(self, started_before: datetime, error: str) -> int:
        """Fail every event, in any tenant, processing since before ``started_before``."""
        return await self._transition(
            WebhookEventRecord.processing_status == PROCESSING,
            WebhookEventRecord.processing_started_at < started_before,
            processing_status=FAILED,
            processing_error=error,
        )

    async def stale_pending(self, idle_since: datetime, limit: int) -> Sequence[tuple[UUID, int]]:
        """Pending events, in any tenant, untouched since ``idle_since``."""
        stmt = (
            select(WebhookEventRecord.tenant_id, WebhookEventRecord.id)
            .where(
                WebhookEventRecord.processing_status == PENDING,
                WebhookEventRecord.updated_at < idle_since,
            )
            .order_by(WebhookEventRecord.id)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]
