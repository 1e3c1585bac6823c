"""Configuration management for PitchMatch.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output, tracing off
    - PRODUCTION: Structured JSON logs, tracing enabled
    - TESTING: In-memory database, minimal logging, no log file

Example:
    >>> from pitchmatch.config import settings, Environment
    >>> print(settings.max_page_size)
    100
    >>> print(settings.environment)
    Environment.DEVELOPMENT
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from datetime import datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SortOrder(StrEnum):
    """Sort direction for list operations."""

    ASC = "asc"
    DESC = "desc"


class TimeRange(StrEnum):
    """Analytics window options."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    ALL = "all"

    def cutoff(self, now: datetime) -> Optional[datetime]:
        """Return the window start for ``now``, or None for an unbounded range."""
        if self == TimeRange.LAST_7_DAYS:
            return now - timedelta(days=7)
        if self == TimeRange.LAST_30_DAYS:
            return now - timedelta(days=30)
        return None


class VideoSortField(StrEnum):
    """Sort keys accepted by the video catalogue listing."""

    CREATED_AT = "created_at"
    VIEWS_COUNT = "views_count"


class ProfileVideoSortField(StrEnum):
    """Sort keys accepted when listing one profile's videos."""

    ID = "id"
    TITLE = "title"
    DURATION = "duration"
    VIEWS_COUNT = "views_count"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class MessageSortField(StrEnum):
    """Sort keys accepted when listing a conversation."""

    CREATED_AT = "created_at"
    ID = "id"
    IS_READ = "is_read"
    SENDER_ID = "sender_id"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, safe defaults
        PRODUCTION: Structured logs, tracing enabled
        TESTING: In-memory database, minimal logging, fast execution
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Runtime environment profile
        data_dir: Base directory for the database and log files
        database_path: Path to SQLite database file
        database_dsn: Optional SQLAlchemy URL overriding database_path
        default_page_size: Limit used when a list call passes none
        max_page_size: Upper bound applied to every list limit
        max_video_size_bytes: Largest accepted video upload
        video_mime_prefix: Required MIME prefix for video uploads
        recent_views_limit: Number of recent profile views in analytics
        lock_retry_attempts: Attempts for writes that hit SQLite lock contention
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, logs)",
    )

    # Database Configuration
    database_path: Path = Field(
        Path("pitchmatch.db"),  # Will be updated to data_dir/pitchmatch.db by validator
        description="Path to SQLite database file (defaults to data_dir/pitchmatch.db)",
    )
    database_dsn: Optional[str] = Field(
        None,
        description="SQLAlchemy database URL; takes precedence over database_path",
    )

    # Pagination
    default_page_size: int = Field(
        10,
        ge=1,
        le=100,
        description="Default number of items returned by list operations",
    )
    max_page_size: int = Field(
        100,
        ge=1,
        le=1000,
        description="Maximum number of items returned by list operations",
    )

    # Video Uploads
    max_video_size_bytes: int = Field(
        500 * 1024 * 1024,
        ge=1,
        description="Maximum accepted video upload size in bytes",
    )
    video_mime_prefix: str = Field(
        "video/",
        description="MIME type prefix required for video uploads",
    )

    # Analytics
    recent_views_limit: int = Field(
        10,
        ge=1,
        le=100,
        description="Number of recent profile views reported by analytics",
    )

    # Storage Contention
    lock_retry_attempts: int = Field(
        5,
        ge=1,
        le=20,
        description="Attempts for writes that fail with 'database is locked'",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    # Observability
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry distributed tracing",
    )
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry OTLP endpoint for traces (e.g., http://localhost:4317)",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus metrics for domain operations",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("video_mime_prefix")
    @classmethod
    def normalize_mime_prefix(cls, v: str) -> str:
        """Lowercase the MIME prefix so comparisons are case-insensitive."""
        v = v.strip().lower()
        if not v:
            raise ValueError("video_mime_prefix must not be empty")
        return v

    @model_validator(mode="after")
    def set_database_path_default(self) -> "Settings":
        """Set database_path to data_dir/pitchmatch.db if not explicitly provided."""
        if self.database_path == Path("pitchmatch.db"):
            self.database_path = self.data_dir / "pitchmatch.db"
        if str(self.database_path) != ":memory:":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        return self

    @model_validator(mode="after")
    def check_page_sizes(self) -> "Settings":
        """Keep the default page size within the cap."""
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, human-readable logs, tracing disabled
            - TESTING: In-memory database, ERROR logging, no file logging, no tracing
            - STAGING: Production-like with INFO logging

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.TESTING:
            self.database_path = Path(":memory:")
            self.database_dsn = None
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        return self

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_dsn:
            return self.database_dsn
        if str(self.database_path) == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.database_path}"

    @property
    def is_in_memory(self) -> bool:
        """Check if the configured database lives only in memory."""
        return self.database_url in ("sqlite://", "sqlite:///:memory:")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        """Check if running in staging environment."""
        return self.environment == Environment.STAGING


def get_settings() -> Settings:
    """Get a settings instance built from the current environment.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
