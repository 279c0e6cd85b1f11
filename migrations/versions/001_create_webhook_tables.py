"""Create webhook configuration and event tables

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "webhook_configurations",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("endpoint_path", sa.String(500), nullable=False),
        sa.Column("auth_method", sa.String(20), nullable=False),
        # Versioned JSON document: event types, fields, auth parameters
        sa.Column("settings", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("tenant_id", "endpoint_path", name="uq_webhook_config_tenant_path"),
    )
    op.create_index("idx_webhook_config_tenant", "webhook_configurations", ["tenant_id"])

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "configuration_id",
            sa.BigInteger,
            sa.ForeignKey("webhook_configurations.id"),
            nullable=False,
        ),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=False),
        sa.Column("external_event_id", sa.String(255), nullable=True),
        sa.Column("company_id", sa.String(255), nullable=True),
        sa.Column("source_ip", sa.String(100), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("auth_method", sa.String(20), nullable=False),
        sa.Column("auth_valid", sa.Boolean, nullable=False),
        sa.Column("auth_verified", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("headers", sa.Text, nullable=False),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("extracted_fields", sa.Text, nullable=False),
        sa.Column(
            "processing_status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("processing_attempts", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_error", sa.Text, nullable=True),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # Every query filters by tenant first
    op.create_index(
        "idx_webhook_event_tenant_received", "webhook_events", ["tenant_id", "received_at"]
    )
    op.create_index(
        "idx_webhook_event_tenant_status", "webhook_events", ["tenant_id", "processing_status"]
    )
    op.create_index(
        "idx_webhook_event_tenant_config", "webhook_events", ["tenant_id", "configuration_id"]
    )


def downgrade() -> None:
    op.drop_index("idx_webhook_event_tenant_config", table_name="webhook_events")
    op.drop_index("idx_webhook_event_tenant_status", table_name="webhook_events")
    op.drop_index("idx_webhook_event_tenant_received", table_name="webhook_events")
    op.drop_table("webhook_events")

    op.drop_index("idx_webhook_config_tenant", table_name="webhook_configurations")
    op.drop_table("webhook_configurations")
