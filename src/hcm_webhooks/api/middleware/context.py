"""Request context middleware: request ids and log context."""

from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from hcm_webhooks.core.logging import bind_contextvars, clear_contextvars

MAX_REQUEST_ID_LENGTH = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and binds it into the structlog context.

    A caller-supplied ``X-Request-ID`` is reused so deliveries can be
    correlated with the sender's logs.

    Sets:
        request.state.request_id: The request ID
        X-Request-ID response header: For client correlation
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with a bound request id."""
        supplied = request.headers.get("X-Request-ID", "").strip()
        request_id = supplied[:MAX_REQUEST_ID_LENGTH] if supplied else str(uuid4())
        request.state.request_id = request_id

        clear_contextvars()
        bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        return response
