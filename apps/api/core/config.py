"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the API, the sweep worker
and the client-side tracker.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal, Optional
from dotenv import load_dotenv

load_dotenv()


MISSED_UNIT_SECONDS = {
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite for local runs and tests).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="live_well")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Notification delivery (Resend HTTP API)
    # Required at request time; the sweep refuses to run without it.
    RESEND_API_KEY: Optional[str] = Field(default=None)
    RESEND_API_URL: str = Field(default="https://api.resend.com/emails")
    ALERT_SENDER: str = Field(default="Live Well App <onboarding@resend.dev>")

    # Alert policy
    ALERT_THRESHOLD_SECONDS: int = Field(default=48 * 3600, gt=0)
    ALERT_MISSED_UNIT: Literal["minutes", "hours", "days"] = Field(default="days")
    ALERT_BATCH_SIZE: int = Field(default=5, ge=1)
    ALERT_SWEEP_TIMEOUT_S: float = Field(default=25.0, gt=0)
    ALERT_SWEEP_INTERVAL_MINUTES: int = Field(default=15, ge=1, le=59)

    # Client liveness policy
    # "window": live while now - last_check_in < LIVE_GRACE_SECONDS (demo uses 60s)
    # "calendar_day": live while the last check-in falls on today's local date
    LIVE_POLICY: Literal["window", "calendar_day"] = Field(default="calendar_day")
    LIVE_GRACE_SECONDS: int = Field(default=60, gt=0)
    HISTORY_LIMIT: int = Field(default=365, ge=100, le=365)
    SYNC_BASE_URL: str = Field(default="http://localhost:8000")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # External API Configuration
    EXTERNAL_API_TIMEOUT: int = Field(default=30)

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions

    @property
    def missed_unit_seconds(self) -> int:
        return MISSED_UNIT_SECONDS[self.ALERT_MISSED_UNIT]


def validate_production_config(
    environment: str,
    debug: bool,
    cors_origins: Optional[str],
    resend_api_key: Optional[str],
) -> None:
    """
    Hard-fail on configurations that must never reach production.

    Non-production environments are not checked.
    """
    if environment != "production":
        return
    if debug:
        raise ValueError("DEBUG must be False in production")
    if not cors_origins or not cors_origins.strip():
        raise ValueError("CORS_ORIGINS must be set in production")
    if not resend_api_key or not resend_api_key.strip():
        raise ValueError("RESEND_API_KEY must be set in production")


# Global settings instance
settings = Settings()
