"""Webhook configuration and event models.

Configurations bind a tenant-owned endpoint path to an authentication
method and extraction rules. Events are the append-only record of every
accepted delivery and carry their own processing state.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime, utc_now

# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer, "sqlite")


class WebhookConfigurationRecord(Base, TimestampMixin):
    """Stored webhook endpoint configuration.

    Event types, field list and authentication parameters live in the
    versioned ``settings`` JSON document; ``auth_method`` is duplicated as a
    column for filtering and reporting.
    """

    __tablename__ = "webhook_configurations"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    tenant_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    endpoint_path: Mapped[str] = mapped_column(String(500), nullable=False)
    auth_method: Mapped[str] = mapped_column(String(20), nullable=False)
    settings: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "endpoint_path", name="uq_webhook_config_tenant_path"),
        Index("idx_webhook_config_tenant", "tenant_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookConfigurationRecord(id={self.id}, tenant_id={self.tenant_id}, "
            f"endpoint_path={self.endpoint_path!r}, active={self.is_active})>"
        )


class WebhookEventRecord(Base, TimestampMixin):
    """One accepted webhook delivery and its processing state.

    Rows are never deleted. ``processing_attempts`` only ever grows; a
    manual retry resets status and timestamps but keeps the count.
    """

    __tablename__ = "webhook_events"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    configuration_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("webhook_configurations.id"), nullable=False
    )
    tenant_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)

    # What the sender told us
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    external_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_ip: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Authentication outcome
    auth_method: Mapped[str] = mapped_column(String(20), nullable=False)
    auth_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    auth_verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Serialized JSON text
    headers: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    extracted_fields: Mapped[str] = mapped_column(Text, nullable=False)

    # Processing state
    processing_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    processing_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processing_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    processing_completed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    received_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_webhook_event_tenant_received", "tenant_id", "received_at"),
        Index("idx_webhook_event_tenant_status", "tenant_id", "processing_status"),
        Index("idx_webhook_event_tenant_config", "tenant_id", "configuration_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookEventRecord(id={self.id}, tenant_id={self.tenant_id}, "
            f"event_type={self.event_type!r}, status={self.processing_status})>"
        )
