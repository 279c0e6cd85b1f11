"""Error handling middleware for mapping exceptions to HTTP responses."""

from datetime import UTC, datetime
from typing import Any, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from hcm_webhooks.api.schemas.errors import APIError, ErrorCode
from hcm_webhooks.core.exceptions import (
    AuthenticationError,
    ConfigurationInactiveError,
    ConflictError,
    HCMWebhookError,
    MalformedPayloadError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = structlog.get_logger()

# Exception -> (status_code, error_code); checked in order, first match wins
EXCEPTION_MAP: list[tuple[type[Exception], int, str]] = [
    (ValidationError, 400, ErrorCode.VALIDATION_ERROR.value),
    (MalformedPayloadError, 400, ErrorCode.INVALID_PAYLOAD.value),
    (AuthenticationError, 401, ErrorCode.UNAUTHORIZED.value),
    (ConfigurationInactiveError, 403, ErrorCode.CONFIGURATION_INACTIVE.value),
    (NotFoundError, 404, ErrorCode.NOT_FOUND.value),
    (ConflictError, 409, ErrorCode.CONFLICT.value),
    (StorageError, 500, ErrorCode.STORAGE_ERROR.value),
]


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns standardized error responses.

    Maps domain exceptions to HTTP status codes and formats all errors using
    the APIError schema. Unexpected exceptions become a generic 500; their
    detail goes to the log only.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        """Convert exception to JSON error response."""
        request_id = str(getattr(request.state, "request_id", "unknown"))
        status_code, error_code, message, details = self._map_exception(exc)

        if status_code >= 500:
            logger.exception(
                "request_failed",
                http_method=request.method,
                http_path=request.url.path,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        error = APIError(
            error_code=error_code,
            message=message,
            details=details,
            request_id=request_id,
            timestamp=datetime.now(UTC),
        )
        return JSONResponse(
            status_code=status_code,
            content=error.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    def _map_exception(self, exc: Exception) -> tuple[int, str, str, dict[str, Any] | None]:
        """Map exception to (status_code, error_code, message, details)."""
        for exc_type, status_code, error_code in EXCEPTION_MAP:
            if isinstance(exc, exc_type):
                return status_code, error_code, exc.message, None

        if isinstance(exc, HCMWebhookError):
            return 500, ErrorCode.INTERNAL_ERROR.value, "Internal server error", None

        return (
            500,
            ErrorCode.INTERNAL_ERROR.value,
            "Internal server error",
            {"type": type(exc).__name__} if self.debug else None,
        )
