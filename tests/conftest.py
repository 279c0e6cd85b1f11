"""Pytest fixtures for HCM webhook tests."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable, Mapping
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncEngine

from hcm_webhooks.api.app import create_app
from hcm_webhooks.config.settings import Settings
from hcm_webhooks.core.encryption import generate_key
from hcm_webhooks.db.config import create_engine, init_db
from hcm_webhooks.webhooks.config_store import ConfigurationStore
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.factory import WebhookServices, create_webhook_services
from hcm_webhooks.webhooks.types import (
    ConfigurationCreate,
    HandlerResult,
    NewEvent,
    WebhookConfiguration,
    WebhookEvent,
)

# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that call setup_logging don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Handlers
# =============================================================================


class RecordingHandler:
    """Event handler that records calls and can be told how to behave."""

    def __init__(self) -> None:
        self.calls: list[tuple[WebhookEvent, WebhookConfiguration, dict[str, Any]]] = []
        self.result = HandlerResult.ok()
        self.exception: Exception | None = None
        self.delay: float = 0.0

    async def __call__(
        self,
        event: WebhookEvent,
        configuration: WebhookConfiguration,
        fields: Mapping[str, Any],
    ) -> HandlerResult:
        self.calls.append((event, configuration, dict(fields)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exception is not None:
            raise self.exception
        return self.result


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


# =============================================================================
# Settings and Database
# =============================================================================


@pytest.fixture
def tenant_id() -> UUID:
    """Generate a test tenant ID."""
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    """A second tenant for isolation checks."""
    return uuid4()


@pytest.fixture
def test_settings() -> Settings:
    """Create settings for testing with an in-memory database."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        PUBLIC_BASE_URL="http://test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DATABASE_CREATE_TABLES=True,
        ENCRYPTION_KEY=SecretStr(generate_key()),
        CONFIG_CACHE_TTL_SECONDS=60,
        PROCESSING_WORKERS=1,
        PROCESSING_QUEUE_SIZE=100,
        PROCESSING_TIMEOUT_SECONDS=5,
        EVENT_LIST_DEFAULT_LIMIT=50,
        EVENT_LIST_MAX_LIMIT=100,
    )


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with all tables."""
    engine = create_engine(test_settings)
    await init_db(engine, create_tables=True)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def services(
    test_settings: Settings,
    engine: AsyncEngine,
    recording_handler: RecordingHandler,
) -> AsyncGenerator[WebhookServices, None]:
    """Wired webhook services; the pipeline is not started."""
    services = create_webhook_services(test_settings, engine=engine, handler=recording_handler)
    yield services
    await services.aclose()


@pytest.fixture
def config_store(services: WebhookServices) -> ConfigurationStore:
    return services.config_store


@pytest.fixture
def event_store(services: WebhookServices) -> EventStore:
    return services.event_store


@pytest.fixture
def create_configuration(
    config_store: ConfigurationStore,
) -> Callable[..., Awaitable[WebhookConfiguration]]:
    """Factory for stored configurations; bearer ``abc123`` on /hr-events by default."""

    async def _create(tenant_id: UUID, **overrides: Any) -> WebhookConfiguration:
        values: dict[str, Any] = {
            "name": "HR events",
            "endpoint_path": "/hr-events",
            "event_types": ["EmployeeHired", "EmployeeTerminated"],
            "auth_method": "bearer",
            "auth_config": {"token": "abc123"},
            "fields": ["EventType", "CompanyId"],
        }
        values.update(overrides)
        configuration_id = await config_store.create(tenant_id, ConfigurationCreate(**values))
        return await config_store.get(tenant_id, configuration_id)

    return _create


@pytest.fixture
def record_event(event_store: EventStore) -> Callable[..., Awaitable[WebhookEvent]]:
    """Factory for stored pending events of a configuration."""

    async def _record(configuration: WebhookConfiguration, **overrides: Any) -> WebhookEvent:
        payload = overrides.pop("payload", {"EventType": "EmployeeHired", "CompanyId": "42"})
        values: dict[str, Any] = {
            "tenant_id": configuration.tenant_id,
            "configuration_id": configuration.id,
            "event_type": payload.get("EventType", "unknown"),
            "auth_method": configuration.auth_method,
            "auth_valid": True,
            "auth_verified": True,
            "headers": {"content-type": "application/json"},
            "payload": payload,
            "extracted_fields": {"EventType": payload.get("EventType")},
            "company_id": "42",
            "source_ip": "203.0.113.7",
        }
        values.update(overrides)
        return await event_store.record(NewEvent(**values))

    return _record


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def test_app(services: WebhookServices) -> FastAPI:
    """FastAPI application bound to the test services."""
    return create_app(services.settings, services=services)


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client calling the test application directly."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
