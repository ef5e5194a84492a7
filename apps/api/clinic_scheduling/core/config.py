"""Application configuration with environment variables."""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite:///./clinic_scheduling.db"
    SQL_ECHO: bool = False

    # Tenancy
    TENANT_HEADER: str = "X-Tenant-ID"

    # Scheduling
    SCHEDULING_TIMEZONE: str = "UTC"  # IANA zone defining calendar days
    MIN_DURATION_MINUTES: int = 15
    MAX_DURATION_MINUTES: int = 240
    BOOKING_LOCK_TIMEOUT_SECONDS: float = 10.0

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    @field_validator("SCHEDULING_TIMEZONE")
    @classmethod
    def validate_scheduling_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IANA timezone {value!r}")
        return value

    @property
    def is_dev(self) -> bool:
        return self.ENV == "dev"


settings = Settings()
