"""FastAPI dependencies for API endpoints.

Services live on ``app.state.services`` and are handed to routes through
these functions so tests can swap any of them per application instance.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from hcm_webhooks.config.settings import Settings
from hcm_webhooks.webhooks.config_store import ConfigurationStore
from hcm_webhooks.webhooks.connection_test import ConnectionTester
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.factory import WebhookServices
from hcm_webhooks.webhooks.ingestion import IngestionHandler
from hcm_webhooks.webhooks.pipeline import ProcessingPipeline


def get_services(request: Request) -> WebhookServices:
    """Get the service graph built for this application."""
    return request.app.state.services


ServicesDep = Annotated[WebhookServices, Depends(get_services)]


def get_app_settings(services: ServicesDep) -> Settings:
    return services.settings


def get_config_store(services: ServicesDep) -> ConfigurationStore:
    return services.config_store


def get_event_store(services: ServicesDep) -> EventStore:
    return services.event_store


def get_pipeline(services: ServicesDep) -> ProcessingPipeline:
    return services.pipeline


def get_ingestion_handler(services: ServicesDep) -> IngestionHandler:
    return services.ingestion


def get_connection_tester(services: ServicesDep) -> ConnectionTester:
    return services.connection_tester


def get_request_id(request: Request) -> str:
    """Get the request ID set by RequestContextMiddleware."""
    return str(getattr(request.state, "request_id", "unknown"))


def get_required_tenant_id(
    x_tenant_id: Annotated[str | None, Header(alias="X-Tenant-ID")] = None,
) -> UUID:
    """Parse the mandatory X-Tenant-ID header.

    Raises:
        HTTPException: 400 if the header is missing or not a UUID
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": "invalid_tenant", "message": "X-Tenant-ID header is required"},
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "invalid_tenant",
                "message": f"Invalid X-Tenant-ID format: {x_tenant_id}",
            },
        ) from None


def get_actor(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> str | None:
    """Identity of the administrator making a management call, if supplied."""
    return x_user_id or None


TenantId = Annotated[UUID, Depends(get_required_tenant_id)]
Actor = Annotated[str | None, Depends(get_actor)]
