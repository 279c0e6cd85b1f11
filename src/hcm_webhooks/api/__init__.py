"""HTTP API for webhook ingestion and management."""
