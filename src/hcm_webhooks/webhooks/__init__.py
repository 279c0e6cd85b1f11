"""Webhook subsystem: configuration, authentication, intake and processing.

Usage:
    from hcm_webhooks.webhooks import (
        ConfigurationStore,
        EventStore,
        IngestionHandler,
        ProcessingPipeline,
    )

    config_store = ConfigurationStore(session_factory)
    event_store = EventStore(session_factory)
    pipeline = ProcessingPipeline(config_store, event_store)
    handler = IngestionHandler(config_store, event_store, pipeline)

    await pipeline.start()
    receipt = await handler.ingest(tenant_id, "hr-events", inbound_request)
"""

from hcm_webhooks.webhooks.auth import authenticate
from hcm_webhooks.webhooks.config_store import ConfigurationCache, ConfigurationStore
from hcm_webhooks.webhooks.connection_test import ConnectionTester, ConnectionTestResult
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.extraction import detect_event_type, extract_fields
from hcm_webhooks.webhooks.handlers import EventHandler, EventTypeRouter, LoggingEventHandler
from hcm_webhooks.webhooks.ingestion import InboundRequest, IngestionHandler, IngestionReceipt
from hcm_webhooks.webhooks.pipeline import ProcessingOutcome, ProcessingPipeline, SweepResult
from hcm_webhooks.webhooks.types import (
    AuthBasic,
    AuthBearer,
    AuthMethod,
    AuthNone,
    AuthOAuth,
    AuthResult,
    ConfigurationCreate,
    ConfigurationUpdate,
    EventFilters,
    HandlerResult,
    ProcessingStatus,
    WebhookConfiguration,
    WebhookEvent,
)

__all__ = [
    # Stores
    "ConfigurationCache",
    "ConfigurationStore",
    "EventStore",
    # Intake
    "InboundRequest",
    "IngestionHandler",
    "IngestionReceipt",
    "authenticate",
    "detect_event_type",
    "extract_fields",
    # Processing
    "EventHandler",
    "EventTypeRouter",
    "LoggingEventHandler",
    "ProcessingOutcome",
    "ProcessingPipeline",
    "SweepResult",
    # Connection tests
    "ConnectionTester",
    "ConnectionTestResult",
    # Types
    "AuthBasic",
    "AuthBearer",
    "AuthMethod",
    "AuthNone",
    "AuthOAuth",
    "AuthResult",
    "ConfigurationCreate",
    "ConfigurationUpdate",
    "EventFilters",
    "HandlerResult",
    "ProcessingStatus",
    "WebhookConfiguration",
    "WebhookEvent",
]
