"""Business-logic capability invoked by the processing pipeline.

The pipeline only owns the state envelope around an event. What processing
actually means for a tenant is supplied as an ``EventHandler``: an async
callable taking the event, its configuration and the extracted fields and
returning a ``HandlerResult``. Handlers may also raise ``ProcessingError``.
"""

from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from hcm_webhooks.webhooks.types import HandlerResult, WebhookConfiguration, WebhookEvent

logger = structlog.get_logger()


class EventHandler(Protocol):
    """Tenant- or event-specific processing logic."""

    async def __call__(
        self,
        event: WebhookEvent,
        configuration: WebhookConfiguration,
        fields: Mapping[str, Any],
    ) -> HandlerResult: ...


class LoggingEventHandler:
    """Default handler: records the event in the log and succeeds."""

    async def __call__(
        self,
        event: WebhookEvent,
        configuration: WebhookConfiguration,
        fields: Mapping[str, Any],
    ) -> HandlerResult:
        logger.info(
            "webhook_event_handled",
            tenant_id=str(event.tenant_id),
            event_id=event.id,
            event_type=event.event_type,
            configuration_id=configuration.id,
            company_id=event.company_id,
            field_names=sorted(fields),
        )
        return HandlerResult.ok(handler="logging")


class EventTypeRouter:
    """Dispatch events to handlers registered per event type.

    Event types are matched case-insensitively. Events with no registered
    handler go to ``default``.

    Example:
        router = EventTypeRouter()
        router.register("EmployeeHired", onboard_employee)
        pipeline = ProcessingPipeline(..., handler=router)
    """

    def __init__(self, default: EventHandler | None = None):
        self._handlers: dict[str, EventHandler] = {}
        self.default: EventHandler = default or LoggingEventHandler()

    def register(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type.lower()] = handler

    def handler_for(self, event_type: str) -> EventHandler:
        return self._handlers.get(event_type.lower(), self.default)

    async def __call__(
        self,
        event: WebhookEvent,
        configuration: WebhookConfiguration,
        fields: Mapping[str, Any],
    ) -> HandlerResult:
        return await self.handler_for(event.event_type)(event, configuration, fields)
