"""Runtime settings for the status tracker.

Values come from ``STATUS_TRACKER_*`` environment variables or a ``.env``
file in the working directory, for example:

    STATUS_TRACKER_STORAGE_BACKEND=postgres
    STATUS_TRACKER_DATABASE_URL=postgresql://tracker:secret@db/status
    STATUS_TRACKER_CONFLICT_RETRIES=5
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class StorageBackend(str, Enum):
    """Where status records, index entries and history are kept."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    """Status tracker settings.

    ``storage_backend`` picks the backend the container builds; only the
    connection field matching it (``sqlite_path`` or ``database_url``) is
    read. Retry settings feed StatusStore.
    """

    model_config = SettingsConfigDict(
        env_prefix="STATUS_TRACKER_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "status-tracker"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT

    # Storage backend
    storage_backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: Path = Path("status_tracker.db")
    database_url: str | None = Field(
        default=None, description="psycopg2 DSN, required for the postgres backend"
    )

    # StatusStore retries
    storage_max_retries: int = Field(default=3, ge=1, le=10)
    storage_retry_base_delay: float = Field(
        default=0.05, ge=0, description="Seconds before the first retry; doubles each time"
    )
    conflict_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Re-read and re-apply attempts for updates without expected_version",
    )

    tracking_id_prefix: str = Field(default="ST", min_length=1, max_length=8)

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] | None = None
    log_file: Path | None = None

    @field_validator("tracking_id_prefix")
    @classmethod
    def check_tracking_id_prefix(cls, value: str) -> str:
        if not (value.isalnum() and value.isascii() and value == value.upper()):
            raise ValueError("tracking_id_prefix must be uppercase letters and digits")
        return value

    @model_validator(mode="after")
    def default_log_format(self) -> "Settings":
        # JSON lines in production, human-readable elsewhere
        if self.log_format is None:
            self.log_format = "json" if self.is_production else "console"
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; ``get_settings.cache_clear()`` reloads them."""
    return Settings()
