from datetime import date
from functools import lru_cache
from threading import Lock
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environment Constants
ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"
ENV_LOCAL = "local"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    This avoids mutating the cached singleton instance in-place.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for the tiered scan service.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "Tierscan"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: local, development, staging, production
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    # Operative civil calendar; every day-of-week and date check runs here.
    SCHEDULER_TIMEZONE: str = "Asia/Jerusalem"
    # Python weekday numbers (Mon=0). Default rest days are Friday and Saturday.
    REST_WEEKDAYS: list[int] = [4, 5]
    # Comma-separated ISO dates the operator wants skipped, e.g. "2026-03-15,2026-06-01"
    EXTRA_SKIP_DATES: str = ""
    MONITOR_INTERVAL_MINUTES: int = 2
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 30.0

    # Enrichment backend (classifier, batch launcher, job status, recalculation)
    ENRICHMENT_API_URL: str = "http://localhost:3000"
    ENRICHMENT_API_KEY: Optional[str] = None

    ADMIN_API_KEY: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        """Centralized validation, grouped by concern."""
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )

        self._validate_scheduler_config()
        if self.TESTING:
            return self

        self._validate_environment_safety()
        return self

    def _validate_scheduler_config(self) -> None:
        try:
            ZoneInfo(self.SCHEDULER_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"SCHEDULER_TIMEZONE is not a known timezone: {self.SCHEDULER_TIMEZONE!r}"
            ) from exc

        if any(day < 0 or day > 6 for day in self.REST_WEEKDAYS):
            raise ValueError("REST_WEEKDAYS entries must be between 0 (Mon) and 6 (Sun).")

        if self.MONITOR_INTERVAL_MINUTES < 1:
            raise ValueError("MONITOR_INTERVAL_MINUTES must be at least 1.")

        if self.EXTERNAL_CALL_TIMEOUT_SECONDS <= 0:
            raise ValueError("EXTERNAL_CALL_TIMEOUT_SECONDS must be positive.")

        # Raises ValueError on malformed dates.
        _ = self.extra_skip_dates

    def _validate_environment_safety(self) -> None:
        if self.is_production or self.ENVIRONMENT == ENV_STAGING:
            if not self.ADMIN_API_KEY or len(self.ADMIN_API_KEY) < 32:
                raise ValueError(
                    "ADMIN_API_KEY must be >= 32 chars in staging/production."
                )

    @property
    def is_production(self) -> bool:
        """True only when ENVIRONMENT is explicitly set to 'production'."""
        return self.ENVIRONMENT == ENV_PRODUCTION

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.SCHEDULER_TIMEZONE)

    @property
    def extra_skip_dates(self) -> frozenset[date]:
        raw = [part.strip() for part in self.EXTRA_SKIP_DATES.split(",")]
        try:
            return frozenset(date.fromisoformat(part) for part in raw if part)
        except ValueError as exc:
            raise ValueError(
                f"EXTRA_SKIP_DATES must be comma-separated YYYY-MM-DD dates: {exc}"
            ) from exc
