"""Construction of the webhook service graph.

All collaborators are built here from settings and passed explicitly to
each other; nothing is instantiated at import time.
"""

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hcm_webhooks.config.settings import Settings
from hcm_webhooks.core.encryption import Encryptor
from hcm_webhooks.db.config import close_db, create_engine, create_session_factory
from hcm_webhooks.webhooks.config_store import ConfigurationCache, ConfigurationStore
from hcm_webhooks.webhooks.connection_test import ConnectionTester
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.handlers import EventHandler
from hcm_webhooks.webhooks.ingestion import IngestionHandler
from hcm_webhooks.webhooks.pipeline import ProcessingPipeline

logger = structlog.get_logger()


@dataclass
class WebhookServices:
    """Everything the API layer needs, wired together."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    config_store: ConfigurationStore
    event_store: EventStore
    pipeline: ProcessingPipeline
    ingestion: IngestionHandler
    connection_tester: ConnectionTester

    async def aclose(self) -> None:
        """Stop the pipeline and release the HTTP client and connections."""
        await self.pipeline.stop()
        await self.connection_tester.client.aclose()
        await close_db(self.engine)


def create_webhook_services(
    settings: Settings,
    *,
    engine: AsyncEngine | None = None,
    handler: EventHandler | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> WebhookServices:
    """Build the service graph from settings.

    Args:
        settings: Application settings
        engine: Existing engine to reuse (default: built from settings)
        handler: Business logic for the pipeline (default: logging handler)
        http_client: Client for connection tests (default: a new AsyncClient)

    Returns:
        Wired services; the pipeline is not started
    """
    engine = engine or create_engine(settings)
    session_factory = create_session_factory(engine)

    encryptor = None
    if settings.ENCRYPTION_KEY is not None:
        encryptor = Encryptor.from_string(settings.ENCRYPTION_KEY)
    else:
        logger.warning("credential_encryption_disabled", reason="ENCRYPTION_KEY not set")

    config_store = ConfigurationStore(
        session_factory,
        cache=ConfigurationCache(ttl_seconds=settings.CONFIG_CACHE_TTL_SECONDS),
        encryptor=encryptor,
    )
    event_store = EventStore(session_factory, max_limit=settings.EVENT_LIST_MAX_LIMIT)
    pipeline = ProcessingPipeline(
        config_store,
        event_store,
        handler=handler,
        settings=settings.pipeline,
    )
    ingestion = IngestionHandler(
        config_store,
        event_store,
        pipeline,
        oauth_min_token_length=settings.OAUTH_MIN_TOKEN_LENGTH,
    )
    connection_tester = ConnectionTester(
        http_client or httpx.AsyncClient(),
        base_url=settings.PUBLIC_BASE_URL,
        timeout_seconds=settings.CONNECTION_TEST_TIMEOUT_SECONDS,
    )
    return WebhookServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        config_store=config_store,
        event_store=event_store,
        pipeline=pipeline,
        ingestion=ingestion,
        connection_tester=connection_tester,
    )
