"""Application configuration management."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Twitch (OAuth client-credentials)
    TWITCH_CLIENT_ID: str = ""
    TWITCH_CLIENT_SECRET: str = ""
    TWITCH_AUTH_URL: str = "https://id.twitch.tv/oauth2/token"
    TWITCH_API_BASE_URL: str = "https://api.twitch.tv/helix"

    # Kick (unauthenticated, blocks non-browser clients)
    KICK_API_BASE_URL: str = "https://kick.com/api/v2"
    KICK_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 10.0
    MIN_REQUEST_DELAY_MS: int = 100
    RATE_LIMIT_BACKOFF_SECONDS: float = 2.0
    MAX_RETRY_ATTEMPTS: int = 3

    # Enrichment
    ENRICHMENT_BATCH_SIZE: int = 50
    PROGRESS_INTERVAL: int = 100
    TARGET_TAG: str = "IGAMING"
    CLASSIFIER_PATTERNS_FILE: Optional[str] = None

    # Logging / error tracking
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    SENTRY_DSN: str = ""

    # APScheduler
    ENRICHMENT_INTERVAL_MINUTES: int = 60
    SCHEDULER_JOB_DEFAULTS_COALESCE: bool = True

    # Application
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    @property
    def min_request_delay_seconds(self) -> float:
        """MIN_REQUEST_DELAY_MS expressed in seconds."""
        return self.MIN_REQUEST_DELAY_MS / 1000.0

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Global settings instance
settings = Settings()
