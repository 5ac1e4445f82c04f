"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key used to verify the bearer tokens of clients", min_length=1
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to persist and render notification timestamps",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:4200"],
        description="Origins allowed to call the API from a browser",
    )
    notification_retention_days: int = Field(
        default=30,
        description="Age in days after which notifications are removed by cleanup",
        gt=0,
    )
    notification_recent_window_hours: int = Field(
        default=24,
        description="Window used by the 'recent notifications' query",
        gt=0,
    )
    notification_page_size: int = Field(
        default=20, description="Default page size for paginated listings", gt=0
    )
    notification_max_page_size: int = Field(
        default=100, description="Largest page size a client may request", gt=0
    )
    notification_archive_after_days: int = Field(
        default=7,
        description="Days a dismissed notification stays dismissed before cleanup archives it",
        ge=0,
    )
    notification_cleanup_interval_minutes: int = Field(
        default=60,
        description="Interval between scheduled cleanup runs; 0 disables the scheduler",
        ge=0,
    )

    @model_validator(mode="after")
    def _validate_page_sizes(self) -> "Settings":
        if self.notification_page_size > self.notification_max_page_size:
            raise ValueError(
                "NOTIFICATION_PAGE_SIZE must not exceed NOTIFICATION_MAX_PAGE_SIZE"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
