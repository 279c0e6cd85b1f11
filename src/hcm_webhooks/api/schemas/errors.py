"""Error response schemas for API."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & authorization
    UNAUTHORIZED = "unauthorized"
    CONFIGURATION_INACTIVE = "configuration_inactive"

    # Request errors
    INVALID_REQUEST = "invalid_request"
    INVALID_TENANT = "invalid_tenant"
    INVALID_PAYLOAD = "invalid_payload"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"

    # System errors
    STORAGE_ERROR = "storage_error"
    INTERNAL_ERROR = "internal_error"


class APIError(BaseModel):
    """Standardized API error response format.

    All API errors return this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")
    request_id: str = Field(..., description="Request ID for tracing")
    timestamp: datetime = Field(..., description="When the error occurred")

    model_config = {"json_schema_extra": {"example": {
        "error_code": "not_found",
        "message": "Webhook configuration not found",
        "details": None,
        "request_id": "5f0c8a52-3c1e-4f7a-9a51-0d0f3b7f9e21",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}
