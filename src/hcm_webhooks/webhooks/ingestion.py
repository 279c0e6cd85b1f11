"""Ingestion handler: the entry point for webhook deliveries.

Resolves the tenant and endpoint path to a configuration, authenticates
the request, parses and reduces the payload, stores a ``pending`` event and
hands it to the processing scheduler without waiting for processing.
Nothing is stored when any step before the insert fails.

The handler knows nothing about HTTP frameworks; the API layer adapts a
request into an ``InboundRequest`` and maps raised errors to responses.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

import structlog

from hcm_webhooks.core import metrics
from hcm_webhooks.core.exceptions import (
    AuthenticationError,
    ConfigurationInactiveError,
    ConfigurationNotFoundError,
    MalformedPayloadError,
    StorageError,
)
from hcm_webhooks.webhooks.auth import DEFAULT_OAUTH_MIN_TOKEN_LENGTH, authenticate
from hcm_webhooks.webhooks.config_store import ConfigurationStore
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.extraction import (
    detect_company_id,
    detect_event_id,
    detect_event_type,
    extract_fields,
)
from hcm_webhooks.webhooks.types import AuthMethod, NewEvent

logger = structlog.get_logger()

# Credential-bearing headers are stored with the credential masked
REDACTED_HEADERS = frozenset({"authorization", "proxy-authorization"})
SOURCE_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")
UNKNOWN_SOURCE = "unknown"


def _mask_credential(value: str) -> str:
    """``Bearer abc`` becomes ``Bearer ***``; a bare credential becomes ``***``."""
    if not value.strip():
        return value
    scheme, _, credential = value.strip().partition(" ")
    return f"{scheme} ***" if credential else "***"


class EventScheduler(Protocol):
    """Anything that can take a stored event off the request path."""

    def schedule(self, tenant_id: UUID, event_id: int) -> bool: ...


@dataclass
class InboundRequest:
    """Transport-neutral view of one webhook delivery.

    Stored events keep the headers exactly as received (same names, same
    values) except for credential-bearing headers, whose credential part
    is replaced with ``***`` while the scheme is kept.
    """

    headers: Mapping[str, str]
    body: bytes
    client_host: str | None = None

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def source_ip(self) -> str:
        """First forwarded address, then proxy headers, then the peer."""
        for name in SOURCE_IP_HEADERS:
            value = self.header(name)
            if value:
                return value.split(",")[0].strip()
        return self.client_host or UNKNOWN_SOURCE

    def headers_for_audit(self) -> dict[str, str]:
        """Headers as received with only credential values masked."""
        return {
            key: _mask_credential(value) if key.lower() in REDACTED_HEADERS else value
            for key, value in self.headers.items()
        }


@dataclass
class IngestionReceipt:
    """Summary returned to the sender of an accepted webhook."""

    event_id: int
    event_type: str
    tenant_or_company_id: str
    auth_valid: bool
    fields_processed: int
    scheduled: bool


class IngestionHandler:
    """Accepts webhook deliveries for configured endpoints.

    Args:
        config_store: Resolves tenant and path to a configuration
        event_store: Persists accepted events
        scheduler: Receives each stored event for asynchronous processing
        oauth_min_token_length: Minimum accepted OAuth token length
    """

    def __init__(
        self,
        config_store: ConfigurationStore,
        event_store: EventStore,
        scheduler: EventScheduler,
        *,
        oauth_min_token_length: int = DEFAULT_OAUTH_MIN_TOKEN_LENGTH,
    ):
        self.config_store = config_store
        self.event_store = event_store
        self.scheduler = scheduler
        self.oauth_min_token_length = oauth_min_token_length

    async def ingest(
        self, tenant_id: UUID, endpoint_path: str, request: InboundRequest
    ) -> IngestionReceipt:
        """Accept one delivery.

        Args:
            tenant_id: Tenant the delivery is addressed to
            endpoint_path: Path tail identifying the configuration
            request: The delivery

        Returns:
            Receipt for the stored event

        Raises:
            ConfigurationNotFoundError: No configuration for tenant and path
            ConfigurationInactiveError: The configuration is deactivated
            AuthenticationError: Credentials did not validate
            MalformedPayloadError: Body is not a JSON object
            StorageError: The event could not be stored
        """
        log = logger.bind(tenant_id=str(tenant_id), endpoint_path=endpoint_path)

        try:
            configuration = await self.config_store.find_by_tenant_and_path(
                tenant_id, endpoint_path
            )
        except StorageError:
            metrics.record_delivery("storage_error")
            raise
        if configuration is None:
            metrics.record_delivery("not_found")
            log.info("webhook_configuration_not_found")
            raise ConfigurationNotFoundError(tenant_id, endpoint_path)
        log = log.bind(configuration_id=configuration.id)

        if not configuration.is_active:
            metrics.record_delivery("inactive")
            log.info("webhook_configuration_inactive")
            raise ConfigurationInactiveError(configuration.id)

        auth_result = authenticate(
            request.headers,
            configuration.auth,
            oauth_min_token_length=self.oauth_min_token_length,
        )
        metrics.record_auth_result(configuration.auth_method, auth_result.valid)
        if not auth_result.valid and configuration.auth_method != AuthMethod.NONE.value:
            metrics.record_delivery("unauthorized")
            log.warning(
                "AUDIT: webhook_auth_rejected",
                auth_method=configuration.auth_method,
                reason=auth_result.reason,
                source_ip=request.source_ip,
            )
            raise AuthenticationError(auth_result.reason)
        if not auth_result.verified:
            log.info("webhook_auth_unverified", reason=auth_result.reason)

        payload = self._parse_body(request.body)

        event_type = detect_event_type(payload)
        if not configuration.accepts_event_type(event_type):
            log.info("event_type_not_accepted", event_type=event_type)
        fields = extract_fields(payload, configuration.fields)
        company_id = detect_company_id(payload)

        try:
            event = await self.event_store.record(
                NewEvent(
                    tenant_id=tenant_id,
                    configuration_id=configuration.id,
                    event_type=event_type,
                    external_event_id=detect_event_id(payload),
                    company_id=company_id,
                    source_ip=request.source_ip,
                    user_agent=request.header("user-agent"),
                    auth_method=configuration.auth_method,
                    auth_valid=auth_result.valid,
                    auth_verified=auth_result.verified,
                    headers=request.headers_for_audit(),
                    payload=payload,
                    extracted_fields=fields,
                )
            )
        except StorageError:
            metrics.record_delivery("storage_error")
            raise

        scheduled = self.scheduler.schedule(tenant_id, event.id)
        metrics.record_delivery("accepted")
        log.info(
            "webhook_received",
            event_id=event.id,
            event_type=event_type,
            company_id=company_id,
            fields_processed=len(fields),
            scheduled=scheduled,
        )
        return IngestionReceipt(
            event_id=event.id,
            event_type=event_type,
            tenant_or_company_id=company_id or str(tenant_id),
            auth_valid=auth_result.valid,
            fields_processed=len(fields),
            scheduled=scheduled,
        )

    def _parse_body(self, body: bytes) -> dict:
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, ValueError) as e:
            metrics.record_delivery("malformed")
            raise MalformedPayloadError("Invalid JSON payload") from e
        if not isinstance(payload, dict):
            metrics.record_delivery("malformed")
            raise MalformedPayloadError("Payload must be a JSON object")
        return payload
