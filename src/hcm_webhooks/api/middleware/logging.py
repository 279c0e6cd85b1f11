"""Request logging middleware."""

import time
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger("hcm_webhooks.api.requests")

# Paths that are polled and would only add noise
QUIET_PATHS = {"/health", "/health/db", "/health/ready", "/metrics"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request.

    Bodies and credential headers are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log the outcome."""
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if request.url.path not in QUIET_PATHS:
            self._log_request(request, response, duration_ms)
        return response

    def _get_client_ip(self, request: Request) -> str | None:
        """Extract client IP from request, considering proxy headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return None

    def _log_request(self, request: Request, response: Response, duration_ms: float) -> None:
        status_code = response.status_code
        if status_code >= 500:
            log = logger.error
        elif status_code >= 400:
            log = logger.warning
        else:
            log = logger.info

        log(
            "request_completed",
            http_method=request.method,
            http_path=request.url.path,
            http_status=status_code,
            duration_ms=round(duration_ms, 2),
            client_ip=self._get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
