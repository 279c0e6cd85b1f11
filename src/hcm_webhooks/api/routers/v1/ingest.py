"""Webhook ingestion endpoints.

This module provides the endpoints HCM systems deliver webhooks to:
- POST /v1/hooks/{tenant_id}/{endpoint_path} - Deliver to a tenant's endpoint
- POST /v1/hooks/endpoint/{endpoint_path} - Same, tenant from X-Tenant-ID
- OPTIONS on both - Pre-flight, no authentication, nothing stored

Errors are raised as domain exceptions and rendered by
ErrorHandlingMiddleware with generic messages.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from hcm_webhooks.api.dependencies import get_ingestion_handler, get_required_tenant_id
from hcm_webhooks.api.schemas.webhooks import WebhookAcceptedResponse
from hcm_webhooks.core.exceptions import ConfigurationNotFoundError
from hcm_webhooks.webhooks.ingestion import InboundRequest, IngestionHandler

router = APIRouter(prefix="/hooks", tags=["webhook-ingestion"])

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization, X-Tenant-ID"

INGEST_RESPONSES = {
    202: {"description": "Webhook accepted and queued for processing"},
    400: {"description": "Body is not a JSON object"},
    401: {"description": "Authentication failed"},
    403: {"description": "Webhook configuration is inactive"},
    404: {"description": "No configuration for this tenant and path"},
    500: {"description": "Event could not be stored"},
}


def _preflight() -> Response:
    return Response(
        status_code=status.HTTP_200_OK,
        headers={
            "Allow": ALLOWED_METHODS,
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        },
    )


async def _ingest(
    handler: IngestionHandler, tenant_id: UUID, endpoint_path: str, request: Request
) -> WebhookAcceptedResponse:
    inbound = InboundRequest(
        headers=dict(request.headers),
        body=await request.body(),
        client_host=request.client.host if request.client else None,
    )
    receipt = await handler.ingest(tenant_id, endpoint_path, inbound)
    return WebhookAcceptedResponse(
        event_id=receipt.event_id,
        event_type=receipt.event_type,
        tenant_or_company_id=receipt.tenant_or_company_id,
        auth_valid=receipt.auth_valid,
        fields_processed=receipt.fields_processed,
    )


# Declared before the tenant-segment route so "endpoint" is never read as a tenant id
@router.options("/endpoint/{endpoint_path:path}", include_in_schema=False)
async def preflight_header_bound(endpoint_path: str) -> Response:
    return _preflight()


@router.post(
    "/endpoint/{endpoint_path:path}",
    response_model=WebhookAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive webhook (tenant in header)",
    description="Deliver a webhook with the tenant supplied in the X-Tenant-ID header.",
    responses=INGEST_RESPONSES,
)
async def receive_webhook_header_bound(
    endpoint_path: str,
    request: Request,
    tenant_id: Annotated[UUID, Depends(get_required_tenant_id)],
    handler: Annotated[IngestionHandler, Depends(get_ingestion_handler)],
) -> WebhookAcceptedResponse:
    """Receive a webhook addressed by header-bound tenant and path."""
    return await _ingest(handler, tenant_id, endpoint_path, request)


@router.options("/{tenant_id}/{endpoint_path:path}", include_in_schema=False)
async def preflight(tenant_id: str, endpoint_path: str) -> Response:
    return _preflight()


@router.post(
    "/{tenant_id}/{endpoint_path:path}",
    response_model=WebhookAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive webhook",
    description="""
    Deliver a webhook to a tenant's configured endpoint.

    **Headers:**
    - Authorization: Basic or Bearer credentials, per the endpoint's method
    - Content-Type: application/json
    - X-Forwarded-For / X-Real-IP: Recorded as the source address

    The event is stored as `pending` and processed asynchronously; the
    response does not wait for processing.
    """,
    responses=INGEST_RESPONSES,
)
async def receive_webhook(
    tenant_id: str,
    endpoint_path: str,
    request: Request,
    handler: Annotated[IngestionHandler, Depends(get_ingestion_handler)],
) -> WebhookAcceptedResponse:
    """Receive a webhook addressed by tenant path segment and endpoint path."""
    try:
        tenant_uuid = UUID(tenant_id)
    except ValueError:
        # A malformed tenant can own no configuration
        raise ConfigurationNotFoundError(tenant_id, endpoint_path) from None
    return await _ingest(handler, tenant_uuid, endpoint_path, request)
