"""Event store for received webhooks.

Persists the append-only event trail and exposes the tenant-scoped query
surface (list, get, statistics) plus the processing state transitions used
by the pipeline and the manual retry operation. Headers, payload and
extracted fields are stored as JSON text and parsed back on read.
"""

import json
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hcm_webhooks.core.exceptions import ConflictError, EventNotFoundError, StorageError
from hcm_webhooks.db.models import WebhookEventRecord
from hcm_webhooks.db.repositories import EventRepository
from hcm_webhooks.webhooks.types import (
    EventFilters,
    EventPage,
    EventStats,
    EventTypeCount,
    HourlyCount,
    NewEvent,
    ProcessingStatus,
    StatsOverview,
    WebhookEvent,
)

logger = structlog.get_logger()

DEFAULT_MAX_LIMIT = 1000
STATS_WINDOW_HOURS = 24


def _loads(text: str | None) -> dict:
    if not text:
        return {}
    value = json.loads(text)
    return value if isinstance(value, dict) else {}


def _to_domain(
    record: WebhookEventRecord,
    configuration_name: str | None = None,
    configuration_path: str | None = None,
) -> WebhookEvent:
    return WebhookEvent(
        id=record.id,
        configuration_id=record.configuration_id,
        tenant_id=record.tenant_id,
        event_type=record.event_type,
        external_event_id=record.external_event_id,
        company_id=record.company_id,
        source_ip=record.source_ip,
        user_agent=record.user_agent,
        auth_method=record.auth_method,
        auth_valid=record.auth_valid,
        auth_verified=record.auth_verified,
        headers=_loads(record.headers),
        payload=_loads(record.payload),
        extracted_fields=_loads(record.extracted_fields),
        processing_status=ProcessingStatus(record.processing_status),
        processing_attempts=record.processing_attempts,
        processing_started_at=record.processing_started_at,
        processing_completed_at=record.processing_completed_at,
        processing_error=record.processing_error,
        received_at=record.received_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
        configuration_name=configuration_name,
        configuration_path=configuration_path,
    )


class EventStore:
    """Tenant-scoped persistence and queries for webhook events.

    Args:
        session_factory: Factory for database sessions
        max_limit: Hard cap on page size regardless of the requested limit
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_limit: int = DEFAULT_MAX_LIMIT,
    ):
        self._session_factory = session_factory
        self.max_limit = max_limit

    # =========================================================================
    # Intake
    # =========================================================================

    async def record(self, event: NewEvent) -> WebhookEvent:
        """Persist a newly accepted event with status ``pending``.

        Raises:
            StorageError: If the insert fails; nothing is persisted
        """
        record = WebhookEventRecord(
            tenant_id=event.tenant_id,
            configuration_id=event.configuration_id,
            event_type=event.event_type,
            external_event_id=event.external_event_id,
            company_id=event.company_id,
            source_ip=event.source_ip,
            user_agent=event.user_agent,
            auth_method=event.auth_method,
            auth_valid=event.auth_valid,
            auth_verified=event.auth_verified,
            headers=json.dumps(event.headers),
            payload=json.dumps(event.payload),
            extracted_fields=json.dumps(event.extracted_fields),
            processing_status=ProcessingStatus.PENDING.value,
            processing_attempts=0,
        )
        try:
            async with self._session_factory() as session:
                record = await EventRepository(session).create(record)
        except SQLAlchemyError as e:
            logger.exception(
                "webhook_event_store_failed",
                tenant_id=str(event.tenant_id),
                configuration_id=event.configuration_id,
            )
            raise StorageError("event insert") from e
        return _to_domain(record)

    # =========================================================================
    # Queries
    # =========================================================================

    async def list(
        self,
        tenant_id: UUID,
        filters: EventFilters | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> EventPage:
        """List a tenant's events newest first.

        ``limit`` is clamped to ``[1, max_limit]`` and ``offset`` to at least 0.
        """
        filters = filters or EventFilters()
        limit = max(1, min(limit, self.max_limit))
        offset = max(0, offset)
        criteria = {
            "configuration_id": filters.configuration_id,
            "event_type": filters.event_type,
            "status": filters.status.value if filters.status else None,
            "auth_valid": filters.auth_valid,
        }
        try:
            async with self._session_factory() as session:
                repo = EventRepository(session)
                rows = await repo.list_filtered(tenant_id, limit=limit, offset=offset, **criteria)
                total = await repo.count_filtered(tenant_id, **criteria)
        except SQLAlchemyError as e:
            raise StorageError("event list") from e

        return EventPage(
            events=[_to_domain(*row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get(self, tenant_id: UUID, event_id: int) -> WebhookEvent:
        """Get one event with its configuration name and path.

        Raises:
            EventNotFoundError: If the event does not exist within the tenant
        """
        try:
            async with self._session_factory() as session:
                row = await EventRepository(session).get_with_configuration(tenant_id, event_id)
        except SQLAlchemyError as e:
            raise StorageError("event read") from e
        if row is None:
            raise EventNotFoundError(tenant_id, event_id)
        return _to_domain(*row)

    async def stats(self, tenant_id: UUID, configuration_id: int | None = None) -> EventStats:
        """Aggregate a tenant's events, optionally for one configuration.

        Hourly buckets cover the current UTC hour and the 23 before it,
        oldest first, including empty hours.
        """
        now = datetime.now(UTC)
        current_hour = now.replace(minute=0, second=0, microsecond=0)
        window_start = current_hour - timedelta(hours=STATS_WINDOW_HOURS - 1)

        try:
            async with self._session_factory() as session:
                repo = EventRepository(session)
                overview = await repo.overview(tenant_id, configuration_id)
                type_counts = await repo.event_type_counts(tenant_id, configuration_id)
                received = await repo.received_since(tenant_id, window_start, configuration_id)
        except SQLAlchemyError as e:
            raise StorageError("event stats") from e

        buckets = {window_start + timedelta(hours=i): 0 for i in range(STATS_WINDOW_HOURS)}
        for received_at in received:
            if received_at.tzinfo is None:
                received_at = received_at.replace(tzinfo=UTC)
            hour = received_at.astimezone(UTC).replace(minute=0, second=0, microsecond=0)
            if hour in buckets:
                buckets[hour] += 1

        average = overview.get("average_attempts")
        return EventStats(
            overview=StatsOverview(
                total_events=overview["total_events"] or 0,
                completed=int(overview["completed"] or 0),
                failed=int(overview["failed"] or 0),
                pending=int(overview["pending"] or 0),
                processing=int(overview["processing"] or 0),
                auth_valid=int(overview["auth_valid"] or 0),
                auth_invalid=int(overview["auth_invalid"] or 0),
                average_attempts=round(float(average), 2) if average is not None else 0.0,
            ),
            event_types=[
                EventTypeCount(event_type=event_type, count=count)
                for event_type, count in type_counts
            ],
            hourly=[HourlyCount(hour=hour, count=count) for hour, count in buckets.items()],
            generated_at=now,
        )

    # =========================================================================
    # State transitions
    # =========================================================================

    async def retry(self, tenant_id: UUID, event_id: int) -> None:
        """Reset an event to ``pending`` for reprocessing.

        Started/completed timestamps and the error are cleared; the attempt
        count is kept.

        Raises:
            EventNotFoundError: If the event does not exist within the tenant
            ConflictError: If the event is currently being processed
        """
        try:
            async with self._session_factory() as session:
                repo = EventRepository(session)
                status = await repo.get_status(tenant_id, event_id)
                if status is None:
                    raise EventNotFoundError(tenant_id, event_id)
                if status == ProcessingStatus.PROCESSING.value:
                    raise ConflictError("Event is currently processing and cannot be retried")
                if not await repo.reset_for_retry(tenant_id, event_id):
                    raise ConflictError("Event started processing before it could be retried")
        except SQLAlchemyError as e:
            raise StorageError("event retry") from e

        logger.info(
            "AUDIT: webhook_event_retried",
            tenant_id=str(tenant_id),
            event_id=event_id,
            previous_status=status,
        )

    async def claim(self, tenant_id: UUID, event_id: int) -> int | None:
        """Compare-and-set ``pending`` to ``processing``.

        Returns:
            The attempt number this caller now owns, or None if it lost
        """
        async with self._session_factory() as session:
            return await EventRepository(session).claim(tenant_id, event_id)

    async def mark_completed(self, tenant_id: UUID, event_id: int, attempt: int) -> bool:
        async with self._session_factory() as session:
            return await EventRepository(session).mark_completed(tenant_id, event_id, attempt)

    async def mark_failed(self, tenant_id: UUID, event_id: int, attempt: int, error: str) -> bool:
        async with self._session_factory() as session:
            return await EventRepository(session).mark_failed(tenant_id, event_id, attempt, error)

    async def fail_stuck(self, started_before: datetime, error: str) -> int:
        """Fail events left in ``processing`` since before ``started_before``."""
        async with self._session_factory() as session:
            return await EventRepository(session).fail_stuck(started_before, error)

    async def stale_pending(self, idle_since: datetime, limit: int) -> Sequence[tuple[UUID, int]]:
        """Pending events nobody has touched since ``idle_since``."""
        async with self._session_factory() as session:
            return await EventRepository(session).stale_pending(idle_since, limit)
