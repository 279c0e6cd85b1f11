"""Database models."""

from .base import Base, PortableUUID, TimestampMixin
from .webhook import WebhookConfigurationRecord, WebhookEventRecord

__all__ = [
    "Base",
    "PortableUUID",
    "TimestampMixin",
    "WebhookConfigurationRecord",
    "WebhookEventRecord",
]
