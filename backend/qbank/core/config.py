"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "QBank Practice API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Database
    # Sync-style URL; the async driver is derived from it in qbank.models.base
    DATABASE_URL: str = "sqlite:///./qbank.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a pooled connection
    DB_POOL_RECYCLE: int = 3600  # recycle connections after 1 hour
    DB_POOL_PRE_PING: bool = True

    # Practice sessions
    MAX_PRACTICE_SESSION_QUESTIONS: int = 200
    MAX_PRACTICE_SESSION_TAG_FILTERS: int = 50
    MAX_PRACTICE_SESSION_DIFFICULTY_FILTERS: int = 3
    # Read-modify-write attempts for question state before giving up
    SESSION_STATE_MAX_CAS_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        description="Bounded compare-and-swap attempts for session state writes",
    )
    MAX_TIME_SPENT_SECONDS: int = 86_400  # 24 hours
    MAX_PAGINATION_LIMIT: int = 100

    # Idempotency keys
    IDEMPOTENCY_TTL_SECONDS: int = 86_400  # 24 hours
    IDEMPOTENCY_MAX_WAIT_SECONDS: float = Field(
        default=2.0,
        ge=0.0,
        description="How long a duplicate request waits for the executor's result",
    )
    IDEMPOTENCY_POLL_INTERVAL_SECONDS: float = Field(
        default=0.05,
        gt=0.0,
        description="Polling interval while waiting for a stored idempotent result",
    )
    IDEMPOTENCY_PRUNE_BATCH_LIMIT: int = 100

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_practice_limits(self) -> Self:
        """Validate that practice session limits are positive."""
        limits = {
            "MAX_PRACTICE_SESSION_QUESTIONS": self.MAX_PRACTICE_SESSION_QUESTIONS,
            "MAX_PRACTICE_SESSION_TAG_FILTERS": self.MAX_PRACTICE_SESSION_TAG_FILTERS,
            "MAX_PRACTICE_SESSION_DIFFICULTY_FILTERS": (
                self.MAX_PRACTICE_SESSION_DIFFICULTY_FILTERS
            ),
            "MAX_TIME_SPENT_SECONDS": self.MAX_TIME_SPENT_SECONDS,
            "MAX_PAGINATION_LIMIT": self.MAX_PAGINATION_LIMIT,
            "IDEMPOTENCY_TTL_SECONDS": self.IDEMPOTENCY_TTL_SECONDS,
            "IDEMPOTENCY_PRUNE_BATCH_LIMIT": self.IDEMPOTENCY_PRUNE_BATCH_LIMIT,
        }
        non_positive = sorted(name for name, value in limits.items() if value <= 0)
        if non_positive:
            raise ValueError(f"Limits must be positive, got non-positive: {non_positive}")
        return self


settings = Settings()
