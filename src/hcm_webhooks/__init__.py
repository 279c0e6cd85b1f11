"""HCM webhook ingestion service.

Receives webhooks from human-capital-management systems, authenticates them
against per-tenant endpoint configurations, stores them as an append-only
event trail and drives each event through an asynchronous processing pipeline.
"""

__version__ = "0.1.0"
