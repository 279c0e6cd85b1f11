"""Webhook event query and retry endpoints.

All routes are scoped to the tenant in the X-Tenant-ID header:
- GET /v1/webhooks/events - List events with filters and pagination
- GET /v1/webhooks/events/stats - Aggregate statistics
- GET /v1/webhooks/events/{id} - Event detail with headers and payload
- POST /v1/webhooks/events/{id}/retry - Reset to pending and reprocess
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from hcm_webhooks.api.dependencies import (
    TenantId,
    get_app_settings,
    get_event_store,
    get_pipeline,
)
from hcm_webhooks.api.schemas.webhooks import (
    EventDetail,
    EventListResponse,
    EventSummary,
    RetryResponse,
)
from hcm_webhooks.config.settings import Settings
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.pipeline import ProcessingPipeline
from hcm_webhooks.webhooks.types import EventFilters, EventStats, ProcessingStatus

router = APIRouter(prefix="/webhooks/events", tags=["webhook-events"])

EventStoreDep = Annotated[EventStore, Depends(get_event_store)]


@router.get(
    "",
    response_model=EventListResponse,
    summary="List webhook events",
    description="Newest first. `limit` is capped at the configured maximum.",
)
async def list_events(
    tenant_id: TenantId,
    store: EventStoreDep,
    settings: Annotated[Settings, Depends(get_app_settings)],
    configuration_id: int | None = None,
    event_type: str | None = None,
    status: ProcessingStatus | None = None,
    auth_valid: bool | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> EventListResponse:
    page = await store.list(
        tenant_id,
        EventFilters(
            configuration_id=configuration_id,
            event_type=event_type,
            status=status,
            auth_valid=auth_valid,
        ),
        limit=limit or settings.EVENT_LIST_DEFAULT_LIMIT,
        offset=offset,
    )
    return EventListResponse(
        events=[EventSummary.from_domain(event) for event in page.events],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get(
    "/stats",
    response_model=EventStats,
    summary="Webhook event statistics",
)
async def event_stats(
    tenant_id: TenantId,
    store: EventStoreDep,
    configuration_id: int | None = None,
) -> EventStats:
    return await store.stats(tenant_id, configuration_id)


@router.get(
    "/{event_id}",
    response_model=EventDetail,
    summary="Get webhook event",
    responses={404: {"description": "Event not found"}},
)
async def get_event(event_id: int, tenant_id: TenantId, store: EventStoreDep) -> EventDetail:
    return EventDetail.from_domain(await store.get(tenant_id, event_id))


@router.post(
    "/{event_id}/retry",
    response_model=RetryResponse,
    summary="Retry webhook event",
    description="Resets the event to pending, clearing its error and timestamps, "
    "and schedules it for processing. The attempt count is kept.",
    responses={
        404: {"description": "Event not found"},
        409: {"description": "Event is currently processing"},
    },
)
async def retry_event(
    event_id: int,
    tenant_id: TenantId,
    store: EventStoreDep,
    pipeline: Annotated[ProcessingPipeline, Depends(get_pipeline)],
) -> RetryResponse:
    await store.retry(tenant_id, event_id)
    scheduled = pipeline.schedule(tenant_id, event_id)
    return RetryResponse(event_id=event_id, scheduled=scheduled)
