"""Request and response schemas for webhook ingestion and management."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from hcm_webhooks.webhooks.connection_test import webhook_url
from hcm_webhooks.webhooks.types import (
    ConfigurationCreate,
    ConfigurationUpdate,
    ProcessingStatus,
    WebhookConfiguration,
    WebhookEvent,
)

# =============================================================================
# Ingestion
# =============================================================================


class WebhookAcceptedResponse(BaseModel):
    """Response for an accepted webhook delivery."""

    success: bool = Field(default=True)
    message: str = Field(default="Webhook received")
    event_id: int = Field(..., description="Stored event id")
    event_type: str = Field(..., description="Detected event type")
    tenant_or_company_id: str = Field(
        ..., description="Sender-reported company id, or the tenant id when absent"
    )
    auth_valid: bool
    fields_processed: int = Field(..., ge=0, description="Number of configured fields extracted")

    model_config = {"json_schema_extra": {"example": {
        "success": True,
        "message": "Webhook received",
        "event_id": 1042,
        "event_type": "EmployeeHired",
        "tenant_or_company_id": "42",
        "auth_valid": True,
        "fields_processed": 2,
    }}}


# =============================================================================
# Configurations
# =============================================================================


class CreateConfigurationRequest(BaseModel):
    """Body for creating a webhook configuration."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    endpoint_path: str | None = Field(default=None, max_length=500)
    event_types: list[str] = Field(default_factory=list)
    auth_method: str | None = Field(default=None, description="none, basic, bearer or oauth")
    auth_config: dict[str, Any] = Field(default_factory=dict)
    fields: list[str] = Field(default_factory=list, description="Payload keys to extract")
    is_active: bool = True

    model_config = {"json_schema_extra": {"example": {
        "name": "HR events",
        "endpoint_path": "/hr-events",
        "event_types": ["EmployeeHired", "EmployeeTerminated"],
        "auth_method": "bearer",
        "auth_config": {"token": "abc123"},
        "fields": ["EventType", "CompanyId"],
    }}}

    def to_domain(self, created_by: str | None) -> ConfigurationCreate:
        return ConfigurationCreate(**self.model_dump(), created_by=created_by)


class UpdateConfigurationRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    event_types: list[str] | None = None
    auth_method: str | None = None
    auth_config: dict[str, Any] | None = None
    fields: list[str] | None = None
    is_active: bool | None = None

    def to_domain(self, updated_by: str | None) -> ConfigurationUpdate:
        return ConfigurationUpdate(**self.model_dump(exclude_unset=True), updated_by=updated_by)


class CreateConfigurationResponse(BaseModel):
    success: bool = True
    id: int
    webhook_url: str
    message: str = "Webhook configuration created successfully"


class ConfigurationResponse(BaseModel):
    """A configuration with credentials masked."""

    id: int
    tenant_id: UUID
    name: str
    description: str | None
    endpoint_path: str
    webhook_url: str
    event_types: list[str]
    auth_method: str
    auth: dict[str, Any] = Field(..., description="Non-secret view of the auth parameters")
    fields: list[str]
    is_active: bool
    created_by: str | None
    updated_by: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(
        cls, configuration: WebhookConfiguration, base_url: str
    ) -> "ConfigurationResponse":
        return cls(
            id=configuration.id,
            tenant_id=configuration.tenant_id,
            name=configuration.name,
            description=configuration.description,
            endpoint_path=configuration.endpoint_path,
            webhook_url=webhook_url(base_url, configuration.tenant_id, configuration.endpoint_path),
            event_types=list(configuration.event_types),
            auth_method=configuration.auth_method,
            auth=configuration.auth.masked(),
            fields=list(configuration.fields),
            is_active=configuration.is_active,
            created_by=configuration.created_by,
            updated_by=configuration.updated_by,
            created_at=configuration.created_at,
            updated_at=configuration.updated_at,
        )


class ConfigurationListResponse(BaseModel):
    configurations: list[ConfigurationResponse]
    total: int


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    status_code: int | None = None
    response: Any = None


# =============================================================================
# Events
# =============================================================================


class EventSummary(BaseModel):
    """Event as shown in listings."""

    id: int
    configuration_id: int
    configuration_name: str | None = None
    configuration_path: str | None = None
    event_type: str
    external_event_id: str | None = None
    company_id: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None
    auth_method: str
    auth_valid: bool
    auth_verified: bool
    processing_status: ProcessingStatus
    processing_attempts: int
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    processing_error: str | None = None
    received_at: datetime

    @classmethod
    def from_domain(cls, event: WebhookEvent) -> "EventSummary":
        return cls.model_validate(event.model_dump())


class EventDetail(EventSummary):
    """Event with its stored headers, payload and extracted fields."""

    tenant_id: UUID
    headers: dict[str, Any]
    payload: dict[str, Any]
    extracted_fields: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, event: WebhookEvent) -> "EventDetail":
        return cls.model_validate(event.model_dump())


class EventListResponse(BaseModel):
    events: list[EventSummary]
    total: int
    limit: int
    offset: int


class RetryResponse(BaseModel):
    success: bool = True
    event_id: int
    message: str = "Event queued for retry"
    scheduled: bool
