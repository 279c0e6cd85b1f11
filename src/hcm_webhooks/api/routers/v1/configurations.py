"""Webhook configuration management endpoints.

All routes are scoped to the tenant in the X-Tenant-ID header:
- GET /v1/webhooks/configurations - List configurations
- POST /v1/webhooks/configurations - Create a configuration
- GET /v1/webhooks/configurations/{id} - Get one configuration
- PATCH /v1/webhooks/configurations/{id} - Partially update
- DELETE /v1/webhooks/configurations/{id} - Deactivate (no physical delete)
- POST /v1/webhooks/configurations/{id}/test - Send a test delivery
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from hcm_webhooks.api.dependencies import (
    Actor,
    TenantId,
    get_app_settings,
    get_config_store,
    get_connection_tester,
)
from hcm_webhooks.api.schemas.webhooks import (
    ConfigurationListResponse,
    ConfigurationResponse,
    ConnectionTestResponse,
    CreateConfigurationRequest,
    CreateConfigurationResponse,
    UpdateConfigurationRequest,
)
from hcm_webhooks.config.settings import Settings
from hcm_webhooks.webhooks.config_store import ConfigurationStore
from hcm_webhooks.webhooks.connection_test import ConnectionTester, webhook_url

router = APIRouter(prefix="/webhooks/configurations", tags=["webhook-configurations"])

StoreDep = Annotated[ConfigurationStore, Depends(get_config_store)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]


@router.get(
    "",
    response_model=ConfigurationListResponse,
    summary="List webhook configurations",
)
async def list_configurations(
    tenant_id: TenantId,
    store: StoreDep,
    settings: SettingsDep,
) -> ConfigurationListResponse:
    configurations = await store.list_by_tenant(tenant_id)
    return ConfigurationListResponse(
        configurations=[
            ConfigurationResponse.from_domain(c, settings.PUBLIC_BASE_URL) for c in configurations
        ],
        total=len(configurations),
    )


@router.post(
    "",
    response_model=CreateConfigurationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create webhook configuration",
    responses={
        400: {"description": "Missing required values or auth parameters"},
        409: {"description": "Endpoint path already exists for this tenant"},
    },
)
async def create_configuration(
    body: CreateConfigurationRequest,
    tenant_id: TenantId,
    actor: Actor,
    store: StoreDep,
    settings: SettingsDep,
) -> CreateConfigurationResponse:
    """Create a configuration and return its public webhook URL."""
    configuration_id = await store.create(tenant_id, body.to_domain(created_by=actor))
    configuration = await store.get(tenant_id, configuration_id)
    return CreateConfigurationResponse(
        id=configuration_id,
        webhook_url=webhook_url(settings.PUBLIC_BASE_URL, tenant_id, configuration.endpoint_path),
    )


@router.get(
    "/{configuration_id}",
    response_model=ConfigurationResponse,
    summary="Get webhook configuration",
    responses={404: {"description": "Configuration not found"}},
)
async def get_configuration(
    configuration_id: int,
    tenant_id: TenantId,
    store: StoreDep,
    settings: SettingsDep,
) -> ConfigurationResponse:
    configuration = await store.get(tenant_id, configuration_id)
    return ConfigurationResponse.from_domain(configuration, settings.PUBLIC_BASE_URL)


@router.patch(
    "/{configuration_id}",
    response_model=ConfigurationResponse,
    summary="Update webhook configuration",
    responses={
        400: {"description": "Nothing to update or invalid auth parameters"},
        404: {"description": "Configuration not found"},
    },
)
async def update_configuration(
    configuration_id: int,
    body: UpdateConfigurationRequest,
    tenant_id: TenantId,
    actor: Actor,
    store: StoreDep,
    settings: SettingsDep,
) -> ConfigurationResponse:
    configuration = await store.update(
        configuration_id, tenant_id, body.to_domain(updated_by=actor)
    )
    return ConfigurationResponse.from_domain(configuration, settings.PUBLIC_BASE_URL)


@router.delete(
    "/{configuration_id}",
    response_model=ConfigurationResponse,
    summary="Deactivate webhook configuration",
    description="Marks the configuration inactive. It and its events stay stored.",
    responses={404: {"description": "Configuration not found"}},
)
async def deactivate_configuration(
    configuration_id: int,
    tenant_id: TenantId,
    actor: Actor,
    store: StoreDep,
    settings: SettingsDep,
) -> ConfigurationResponse:
    configuration = await store.deactivate(configuration_id, tenant_id, updated_by=actor)
    return ConfigurationResponse.from_domain(configuration, settings.PUBLIC_BASE_URL)


@router.post(
    "/{configuration_id}/test",
    response_model=ConnectionTestResponse,
    summary="Test webhook configuration",
    description="Sends a TestConnection delivery to the configuration's own URL.",
    responses={404: {"description": "Configuration not found"}},
)
async def test_configuration(
    configuration_id: int,
    tenant_id: TenantId,
    store: StoreDep,
    tester: Annotated[ConnectionTester, Depends(get_connection_tester)],
) -> ConnectionTestResponse:
    configuration = await store.get(tenant_id, configuration_id)
    result = await tester.test(configuration)
    return ConnectionTestResponse(
        success=result.success,
        message=result.message,
        status_code=result.status_code,
        response=result.response,
    )
