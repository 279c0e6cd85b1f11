"""Configuration store for webhook endpoints.

Persists tenant-owned endpoint configurations and resolves inbound
(tenant, path) pairs to them. Typed ``WebhookConfiguration`` records are
converted to and from the versioned settings document here and nowhere
else; when an ``Encryptor`` is supplied the authentication parameters in
that document are encrypted.

Path lookups are cached in process for a short TTL. Every create and
update drops the tenant's cached entries before returning.
"""

import json
import time
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hcm_webhooks.core.encryption import Encryptor
from hcm_webhooks.core.exceptions import (
    ConfigurationNotFoundError,
    ConflictError,
    StorageError,
    ValidationError,
)
from hcm_webhooks.db.models import WebhookConfigurationRecord
from hcm_webhooks.db.repositories import ConfigurationRepository
from hcm_webhooks.webhooks.types import (
    SETTINGS_SCHEMA_VERSION,
    ConfigurationCreate,
    ConfigurationUpdate,
    WebhookConfiguration,
    build_auth_settings,
    load_auth_settings,
    normalize_endpoint_path,
)

logger = structlog.get_logger()


class ConfigurationCache:
    """TTL cache of path lookups, partitioned by tenant.

    A TTL of zero disables caching entirely.
    """

    def __init__(self, ttl_seconds: float = 60.0):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[UUID, dict[str, tuple[float, WebhookConfiguration]]] = {}

    def get(self, tenant_id: UUID, path: str) -> WebhookConfiguration | None:
        entry = self._entries.get(tenant_id, {}).get(path)
        if entry is None:
            return None
        expires_at, configuration = entry
        if time.monotonic() >= expires_at:
            self._entries[tenant_id].pop(path, None)
            return None
        return configuration

    def put(self, tenant_id: UUID, path: str, configuration: WebhookConfiguration) -> None:
        if self.ttl_seconds <= 0:
            return
        expires_at = time.monotonic() + self.ttl_seconds
        self._entries.setdefault(tenant_id, {})[path] = (expires_at, configuration)

    def invalidate_tenant(self, tenant_id: UUID) -> None:
        self._entries.pop(tenant_id, None)

    def clear(self) -> None:
        self._entries.clear()


class ConfigurationStore:
    """Tenant-scoped persistence of webhook configurations.

    Args:
        session_factory: Factory for database sessions
        cache: Path lookup cache (a fresh disabled cache when omitted)
        encryptor: Encrypts authentication parameters at rest when provided
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: ConfigurationCache | None = None,
        encryptor: Encryptor | None = None,
    ):
        self._session_factory = session_factory
        self.cache = cache or ConfigurationCache(ttl_seconds=0)
        self._encryptor = encryptor

    # =========================================================================
    # Serialization boundary
    # =========================================================================

    def _aad(self, tenant_id: UUID) -> bytes:
        return str(tenant_id).encode("ascii")

    def _dump_settings(self, configuration: WebhookConfiguration) -> str:
        document: dict[str, Any] = {
            "schema_version": SETTINGS_SCHEMA_VERSION,
            "event_types": list(configuration.event_types),
            "fields": list(configuration.fields),
        }
        auth_params = configuration.auth.to_storage()
        if self._encryptor is not None:
            document["auth_encrypted"] = self._encryptor.encrypt_json(
                auth_params, self._aad(configuration.tenant_id)
            )
        else:
            document["auth"] = auth_params
        return json.dumps(document)

    def _to_domain(self, record: WebhookConfigurationRecord) -> WebhookConfiguration:
        document = json.loads(record.settings)
        version = document.get("schema_version", 1)
        if version > SETTINGS_SCHEMA_VERSION:
            logger.warning(
                "webhook_configuration_newer_schema",
                configuration_id=record.id,
                schema_version=version,
            )

        if "auth_encrypted" in document:
            if self._encryptor is None:
                raise StorageError("decrypt configuration credentials without a key")
            auth_params = self._encryptor.decrypt_json(
                document["auth_encrypted"], self._aad(record.tenant_id)
            )
        else:
            auth_params = document.get("auth", {})

        return WebhookConfiguration(
            id=record.id,
            tenant_id=record.tenant_id,
            name=record.name,
            description=record.description,
            endpoint_path=record.endpoint_path,
            event_types=document.get("event_types", []),
            auth=load_auth_settings(record.auth_method, auth_params),
            fields=document.get("fields", []),
            is_active=record.is_active,
            created_by=record.created_by,
            updated_by=record.updated_by,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    async def find_by_tenant_and_path(
        self, tenant_id: UUID, path: str
    ) -> WebhookConfiguration | None:
        """Resolve an inbound path to the tenant's configuration.

        The path matches the stored value as given and with a leading
        separator added.

        Returns:
            The configuration, active or not, or None when nothing matches
        """
        cached = self.cache.get(tenant_id, path)
        if cached is not None:
            return cached

        candidates = [path] if path.startswith("/") else [path, f"/{path}"]
        try:
            async with self._session_factory() as session:
                record = await ConfigurationRepository(session).find_by_paths(tenant_id, candidates)
        except SQLAlchemyError as e:
            logger.exception("configuration_lookup_failed", tenant_id=str(tenant_id))
            raise StorageError("configuration lookup") from e

        if record is None:
            return None
        configuration = self._to_domain(record)
        self.cache.put(tenant_id, path, configuration)
        return configuration

    async def get(self, tenant_id: UUID, configuration_id: int) -> WebhookConfiguration:
        """Get one of the tenant's configurations by id.

        Raises:
            ConfigurationNotFoundError: If the id is unknown within the tenant
        """
        try:
            async with self._session_factory() as session:
                record = await ConfigurationRepository(session).get_for_tenant(
                    tenant_id, configuration_id
                )
        except SQLAlchemyError as e:
            raise StorageError("configuration read") from e
        if record is None:
            raise ConfigurationNotFoundError(tenant_id, configuration_id)
        return self._to_domain(record)

    async def list_by_tenant(self, tenant_id: UUID) -> list[WebhookConfiguration]:
        """List all of the tenant's configurations, newest first."""
        try:
            async with self._session_factory() as session:
                records = await ConfigurationRepository(session).list_for_tenant(tenant_id)
        except SQLAlchemyError as e:
            raise StorageError("configuration list") from e
        return [self._to_domain(record) for record in records]

    async def create(self, tenant_id: UUID, data: ConfigurationCreate) -> int:
        """Validate and persist a new configuration.

        Args:
            tenant_id: Owning tenant
            data: Administrator input

        Returns:
            The new configuration id

        Raises:
            ValidationError: If required values or auth parameters are missing
            ConflictError: If the tenant already uses the endpoint path
        """
        if not data.name or not data.endpoint_path or not data.auth_method:
            raise ValidationError("name, endpoint_path, and auth_method are required")

        auth = build_auth_settings(data.auth_method, data.auth_config)
        endpoint_path = normalize_endpoint_path(data.endpoint_path)
        if endpoint_path == "/":
            raise ValidationError("endpoint_path must not be empty")

        # Validated typed record; id is assigned by the database
        draft = WebhookConfiguration(
            id=0,
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            endpoint_path=endpoint_path,
            event_types=data.event_types,
            auth=auth,
            fields=data.fields,
            is_active=data.is_active,
        )
        record = WebhookConfigurationRecord(
            tenant_id=tenant_id,
            name=draft.name,
            description=draft.description,
            endpoint_path=endpoint_path,
            auth_method=auth.method,
            settings=self._dump_settings(draft),
            is_active=draft.is_active,
            created_by=data.created_by,
            updated_by=data.created_by,
        )

        try:
            async with self._session_factory() as session:
                repo = ConfigurationRepository(session)
                if await repo.path_exists(tenant_id, endpoint_path):
                    raise ConflictError(f"Endpoint path already exists: {endpoint_path}")
                try:
                    record = await repo.create(record)
                except IntegrityError as e:
                    raise ConflictError(f"Endpoint path already exists: {endpoint_path}") from e
        except SQLAlchemyError as e:
            logger.exception("configuration_create_failed", tenant_id=str(tenant_id))
            raise StorageError("configuration create") from e
        finally:
            self.cache.invalidate_tenant(tenant_id)

        logger.info(
            "AUDIT: webhook_configuration_created",
            tenant_id=str(tenant_id),
            configuration_id=record.id,
            endpoint_path=endpoint_path,
            auth_method=auth.method,
            created_by=data.created_by,
        )
        return record.id

    async def update(
        self, configuration_id: int, tenant_id: UUID, changes: ConfigurationUpdate
    ) -> WebhookConfiguration:
        """Apply a partial update.

        Changing ``auth_method`` requires matching ``auth_config``; sending
        only ``auth_config`` replaces the parameters for the current method.

        Raises:
            ConfigurationNotFoundError: If the id is unknown within the tenant
            ValidationError: If nothing is changed or auth parameters are invalid
        """
        requested = changes.model_dump(exclude_unset=True)
        requested.pop("updated_by", None)
        if not requested:
            raise ValidationError("No fields to update")

        try:
            async with self._session_factory() as session:
                repo = ConfigurationRepository(session)
                record = await repo.get_for_tenant(tenant_id, configuration_id)
                if record is None:
                    raise ConfigurationNotFoundError(tenant_id, configuration_id)

                current = self._to_domain(record)
                auth = current.auth
                if "auth_method" in requested or "auth_config" in requested:
                    method = requested.get("auth_method") or current.auth_method
                    params = requested.get("auth_config")
                    if params is None:
                        if method != current.auth_method:
                            raise ValidationError(
                                "auth_config is required when changing auth_method"
                            )
                        params = current.auth.to_storage()
                    auth = build_auth_settings(method, params)

                updated = current.model_copy(
                    update={
                        "name": requested.get("name") or current.name,
                        "description": requested.get("description", current.description),
                        "event_types": (
                            requested["event_types"]
                            if requested.get("event_types") is not None
                            else current.event_types
                        ),
                        "fields": (
                            requested["fields"]
                            if requested.get("fields") is not None
                            else current.fields
                        ),
                        "auth": auth,
                        "is_active": (
                            requested["is_active"]
                            if requested.get("is_active") is not None
                            else current.is_active
                        ),
                        "updated_by": changes.updated_by,
                    }
                )
                record = await repo.update(
                    record,
                    {
                        "name": updated.name,
                        "description": updated.description,
                        "auth_method": auth.method,
                        "settings": self._dump_settings(updated),
                        "is_active": updated.is_active,
                        "updated_by": changes.updated_by,
                    },
                )
        except SQLAlchemyError as e:
            logger.exception("configuration_update_failed", tenant_id=str(tenant_id))
            raise StorageError("configuration update") from e
        finally:
            self.cache.invalidate_tenant(tenant_id)

        logger.info(
            "AUDIT: webhook_configuration_updated",
            tenant_id=str(tenant_id),
            configuration_id=configuration_id,
            changed=sorted(requested),
            updated_by=changes.updated_by,
        )
        return self._to_domain(record)

    async def deactivate(
        self, configuration_id: int, tenant_id: UUID, *, updated_by: str | None = None
    ) -> WebhookConfiguration:
        """Retire a configuration; it stays stored with its events."""
        return await self.update(
            configuration_id,
            tenant_id,
            ConfigurationUpdate(is_active=False, updated_by=updated_by),
        )
