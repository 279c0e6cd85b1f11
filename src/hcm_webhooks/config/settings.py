"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseModel):
    """Tuning knobs for the background processing pipeline.

    Grouped so the pipeline can be handed exactly what it needs instead of
    the full application settings.
    """

    workers: int = Field(default=4, ge=1, le=64)
    """Number of concurrent consumer tasks."""

    queue_size: int = Field(default=1000, ge=1)
    """Maximum number of scheduled events waiting for a worker."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    """Upper bound on a single business-logic invocation."""

    sweep_interval_seconds: float = Field(default=60.0, gt=0)
    """How often the sweeper looks for stuck or orphaned events."""

    stuck_grace_seconds: float = Field(default=30.0, ge=0)
    """Extra time past the timeout before a processing event counts as stuck."""

    pending_requeue_after_seconds: float = Field(default=300.0, gt=0)
    """Age after which a never-started pending event is scheduled again."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: list[str] = []

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./hcm_webhooks.db"
    DATABASE_ECHO: bool = False
    DATABASE_CREATE_TABLES: bool = True

    # Credentials at rest (base64-encoded 32-byte AES key)
    ENCRYPTION_KEY: SecretStr | None = None

    # Configuration lookups
    CONFIG_CACHE_TTL_SECONDS: float = 60.0

    # Processing pipeline
    PROCESSING_WORKERS: int = 4
    PROCESSING_QUEUE_SIZE: int = 1000
    PROCESSING_TIMEOUT_SECONDS: float = 30.0
    STUCK_SWEEP_INTERVAL_SECONDS: float = 60.0
    STUCK_PROCESSING_GRACE_SECONDS: float = 30.0
    PENDING_REQUEUE_AFTER_SECONDS: float = 300.0

    # Event queries
    EVENT_LIST_DEFAULT_LIMIT: int = 50
    EVENT_LIST_MAX_LIMIT: int = 1000

    # Authentication
    OAUTH_MIN_TOKEN_LENGTH: int = 11

    # Connection tests
    CONNECTION_TEST_TIMEOUT_SECONDS: float = 30.0

    @property
    def pipeline(self) -> PipelineSettings:
        """Pipeline tuning derived from the flat environment settings."""
        return PipelineSettings(
            workers=self.PROCESSING_WORKERS,
            queue_size=self.PROCESSING_QUEUE_SIZE,
            timeout_seconds=self.PROCESSING_TIMEOUT_SECONDS,
            sweep_interval_seconds=self.STUCK_SWEEP_INTERVAL_SECONDS,
            stuck_grace_seconds=self.STUCK_PROCESSING_GRACE_SECONDS,
            pending_requeue_after_seconds=self.PENDING_REQUEUE_AFTER_SECONDS,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
