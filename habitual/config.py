from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./habitual.db",
        description="SQLAlchemy async URL, e.g., postgresql+asyncpg://...",
    )

    # Used only for habit rows that were saved without a timezone
    DEFAULT_TIMEZONE: str = "UTC"

    # Retention (in days) for soft-deleted tasks, projects and habits
    PURGE_RETENTION_DAYS: int = 60
    PURGE_HOUR_UTC: int = Field(3, ge=0, le=23)

    DEFAULT_NEAR_THRESHOLD_PERCENT: int = Field(80, gt=0, le=100)
    SCHEDULE_STATS_WINDOW_DAYS: int = 30
    PERIOD_CLOSE_INTERVAL_MINUTES: int = 60
    # Upper bound on empty periods written for one habit in a single rollover
    PERIOD_BACKFILL_LIMIT: int = Field(400, gt=0)

    AVOID_STREAK_MAX_DAYS: int = 365
    AVOID_HISTORY_DAYS: int = 60

    @field_validator("DEFAULT_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"DEFAULT_TIMEZONE is not a valid IANA timezone: {v}") from e
        return v

settings = Settings()
