"""
Daily Digest Configuration Settings
"""
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Database (use DIGEST_ prefix)
    database_url: str = Field(
        default="sqlite:///./data/digest.db",
        alias="DIGEST_DATABASE_URL",
        description="SQLAlchemy URL of the todo/event store"
    )
    create_tables: bool = Field(
        default=True,
        alias="DIGEST_CREATE_TABLES",
        description="Create missing tables on startup (local SQLite only)"
    )

    # Server
    port: int = Field(default=8000, alias="DIGEST_PORT")
    host: str = Field(default="0.0.0.0", alias="DIGEST_HOST")

    log_level: str = Field(default="INFO", alias="DIGEST_LOG_LEVEL")

    # Calendar
    # Empty means the server's local zone
    timezone: str = Field(
        default="",
        alias="DIGEST_TIMEZONE",
        description="IANA zone used for 'today' and day boundaries (e.g. America/New_York)"
    )
    week_start: str = Field(
        default="monday",
        alias="DIGEST_WEEK_START",
        description="First day of the week, used to find the end of the week"
    )

    @field_validator("week_start")
    @classmethod
    def _validate_week_start(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in WEEKDAYS:
            raise ValueError(f"week_start must be one of {', '.join(WEEKDAYS)}")
        return value

    @property
    def week_start_index(self) -> int:
        """Weekday number of the first day of the week (Monday is 0)."""
        return WEEKDAYS.index(self.week_start)

    @property
    def tz(self) -> Optional[tzinfo]:
        """
        Zone for the digest calendar.

        None means the server's local zone, whose offset is looked up per
        date so daylight-saving changes are honoured.
        """
        if self.timezone:
            return ZoneInfo(self.timezone)
        return None


settings = Settings()
