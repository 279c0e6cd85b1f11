"""Domain types for webhook configurations and events.

Authentication settings are a closed set of tagged variants, one per
supported method, so the dispatcher can select behaviour by pattern match.
Configurations and events are typed records; serialization to the stored
JSON text happens only at the store boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from hcm_webhooks.core.exceptions import ValidationError

# Current version of the stored configuration settings document
SETTINGS_SCHEMA_VERSION = 1


class AuthMethod(str, Enum):
    """Supported webhook authentication methods."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    OAUTH = "oauth"


class ProcessingStatus(str, Enum):
    """Processing state of a stored event."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Authentication Variants
# =============================================================================


class AuthNone(BaseModel):
    """No authentication; every request is accepted."""

    model_config = ConfigDict(frozen=True)

    method: Literal["none"] = "none"

    def to_storage(self) -> dict[str, Any]:
        return {}

    def masked(self) -> dict[str, Any]:
        return {}


class AuthBasic(BaseModel):
    """HTTP Basic credentials compared against the Authorization header."""

    model_config = ConfigDict(frozen=True)

    method: Literal["basic"] = "basic"
    username: str = Field(min_length=1)
    password: SecretStr

    def to_storage(self) -> dict[str, Any]:
        return {"username": self.username, "password": self.password.get_secret_value()}

    def masked(self) -> dict[str, Any]:
        return {"username": self.username, "has_password": True}


class AuthBearer(BaseModel):
    """Static bearer token."""

    model_config = ConfigDict(frozen=True)

    method: Literal["bearer"] = "bearer"
    token: SecretStr

    def to_storage(self) -> dict[str, Any]:
        return {"token": self.token.get_secret_value()}

    def masked(self) -> dict[str, Any]:
        return {"has_token": True}


class AuthOAuth(BaseModel):
    """OAuth client registration; senders present an access token as a bearer."""

    model_config = ConfigDict(frozen=True)

    method: Literal["oauth"] = "oauth"
    oauth_url: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: SecretStr

    def to_storage(self) -> dict[str, Any]:
        return {
            "oauth_url": self.oauth_url,
            "client_id": self.client_id,
            "client_secret": self.client_secret.get_secret_value(),
        }

    def masked(self) -> dict[str, Any]:
        return {"oauth_url": self.oauth_url, "client_id": self.client_id, "has_client_secret": True}


class UnrecognizedAuth(BaseModel):
    """A stored method this version does not know; never authenticates."""

    model_config = ConfigDict(frozen=True)

    method: str

    def to_storage(self) -> dict[str, Any]:
        return {}

    def masked(self) -> dict[str, Any]:
        return {}


AuthSettings = AuthNone | AuthBasic | AuthBearer | AuthOAuth | UnrecognizedAuth


def _require(params: dict[str, Any], keys: tuple[str, ...], message: str) -> dict[str, str]:
    values = {}
    for key in keys:
        value = params.get(key)
        if not isinstance(value, str) or not value:
            raise ValidationError(message)
        values[key] = value
    return values


def build_auth_settings(method: str | None, params: dict[str, Any] | None) -> AuthSettings:
    """Validate method-specific parameters and build the matching variant.

    Args:
        method: Authentication method name
        params: Raw parameters supplied by the administrator

    Returns:
        The authentication variant for ``method``

    Raises:
        ValidationError: If the method is unsupported or parameters are missing
    """
    params = params or {}
    match method:
        case AuthMethod.NONE.value:
            return AuthNone()
        case AuthMethod.BASIC.value:
            values = _require(
                params,
                ("username", "password"),
                "Basic authentication requires username and password",
            )
            return AuthBasic(username=values["username"], password=SecretStr(values["password"]))
        case AuthMethod.BEARER.value:
            values = _require(params, ("token",), "Bearer authentication requires token")
            return AuthBearer(token=SecretStr(values["token"]))
        case AuthMethod.OAUTH.value:
            values = _require(
                params,
                ("oauth_url", "client_id", "client_secret"),
                "OAuth authentication requires oauth_url, client_id, and client_secret",
            )
            return AuthOAuth(
                oauth_url=values["oauth_url"],
                client_id=values["client_id"],
                client_secret=SecretStr(values["client_secret"]),
            )
        case _:
            raise ValidationError(f"Unsupported authentication method: {method}")


def load_auth_settings(method: str, params: dict[str, Any]) -> AuthSettings:
    """Rebuild a stored variant without rejecting legacy or unknown methods."""
    try:
        return build_auth_settings(method, params)
    except ValidationError:
        return UnrecognizedAuth(method=method)


def normalize_endpoint_path(path: str) -> str:
    """Ensure a configured endpoint path starts with a single separator."""
    stripped = path.strip()
    return stripped if stripped.startswith("/") else f"/{stripped}"


# =============================================================================
# Configurations
# =============================================================================


class WebhookConfiguration(BaseModel):
    """A tenant-owned webhook endpoint."""

    model_config = ConfigDict(frozen=True)

    id: int
    tenant_id: UUID
    name: str
    description: str | None = None
    endpoint_path: str
    event_types: list[str] = Field(default_factory=list)
    auth: AuthSettings
    fields: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def auth_method(self) -> str:
        return self.auth.method

    def accepts_event_type(self, event_type: str) -> bool:
        """Whether ``event_type`` is allowed; an empty list accepts everything."""
        if not self.event_types:
            return True
        wanted = event_type.lower()
        return any(accepted.lower() == wanted for accepted in self.event_types)


class ConfigurationCreate(BaseModel):
    """Administrator input for a new configuration.

    Required values are checked by the store so that missing input surfaces
    as a domain ``ValidationError`` with a readable message.
    """

    name: str | None = None
    description: str | None = None
    endpoint_path: str | None = None
    event_types: list[str] = Field(default_factory=list)
    auth_method: str | None = None
    auth_config: dict[str, Any] = Field(default_factory=dict)
    fields: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: str | None = None


class ConfigurationUpdate(BaseModel):
    """Partial update; only explicitly set fields are applied."""

    name: str | None = None
    description: str | None = None
    event_types: list[str] | None = None
    auth_method: str | None = None
    auth_config: dict[str, Any] | None = None
    fields: list[str] | None = None
    is_active: bool | None = None
    updated_by: str | None = None


# =============================================================================
# Events
# =============================================================================


@dataclass
class AuthResult:
    """Outcome of validating one request against a configuration.

    Attributes:
        valid: Whether the request is authenticated
        reason: Why validation failed, or a note on a weak success
        verified: False when the credential was only checked for shape
    """

    valid: bool
    reason: str | None = None
    verified: bool = True

    @classmethod
    def success(cls, *, verified: bool = True, reason: str | None = None) -> "AuthResult":
        return cls(valid=True, reason=reason, verified=verified)

    @classmethod
    def failure(cls, reason: str) -> "AuthResult":
        return cls(valid=False, reason=reason, verified=False)


@dataclass
class NewEvent:
    """Everything the ingestion handler persists for an accepted delivery."""

    tenant_id: UUID
    configuration_id: int
    event_type: str
    auth_method: str
    auth_valid: bool
    auth_verified: bool
    headers: dict[str, str]
    payload: dict[str, Any]
    extracted_fields: dict[str, Any]
    external_event_id: str | None = None
    company_id: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None


class WebhookEvent(BaseModel):
    """A stored event as returned by the event store."""

    model_config = ConfigDict(frozen=True)

    id: int
    configuration_id: int
    tenant_id: UUID
    event_type: str
    external_event_id: str | None = None
    company_id: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None
    auth_method: str
    auth_valid: bool
    auth_verified: bool
    headers: dict[str, Any]
    payload: dict[str, Any]
    extracted_fields: dict[str, Any]
    processing_status: ProcessingStatus
    processing_attempts: int
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    processing_error: str | None = None
    received_at: datetime
    created_at: datetime
    updated_at: datetime
    configuration_name: str | None = None
    configuration_path: str | None = None


@dataclass
class EventFilters:
    """Optional filters for listing events."""

    configuration_id: int | None = None
    event_type: str | None = None
    status: ProcessingStatus | None = None
    auth_valid: bool | None = None


@dataclass
class EventPage:
    """One page of events plus the unpaged total."""

    events: list[WebhookEvent]
    total: int
    limit: int
    offset: int


# =============================================================================
# Statistics
# =============================================================================


class StatsOverview(BaseModel):
    """Totals by status and authentication outcome."""

    total_events: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    processing: int = 0
    auth_valid: int = 0
    auth_invalid: int = 0
    average_attempts: float = 0.0


class EventTypeCount(BaseModel):
    event_type: str
    count: int


class HourlyCount(BaseModel):
    hour: datetime = Field(..., description="Start of the UTC hour bucket")
    count: int


class EventStats(BaseModel):
    """Aggregates over a tenant's events, optionally for one configuration."""

    overview: StatsOverview
    event_types: list[EventTypeCount] = Field(default_factory=list)
    hourly: list[HourlyCount] = Field(default_factory=list)
    generated_at: datetime


@dataclass
class HandlerResult:
    """Outcome returned by business logic for one event."""

    success: bool
    error_message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details: Any) -> "HandlerResult":
        return cls(success=True, details=details)

    @classmethod
    def failure(cls, message: str, **details: Any) -> "HandlerResult":
        return cls(success=False, error_message=message, details=details)
