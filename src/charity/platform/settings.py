"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
This is the single source of truth for all platform configuration.
"""

from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: TICKETS__SERVICE_MINUTES_PER_POSITION=7
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("charity-platform", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")
    testing: bool = Field(False, description="Testing mode")

    # Server configuration
    host: str = Field(
        "0.0.0.0", description="Server host"
    )  # nosec B104 - Production deployments use proxy
    port: int = Field(8000, description="Server port")
    reload: bool = Field(False, description="Auto-reload on changes")

    # ============================================================
    # Database Configuration
    # ============================================================

    class DatabaseSettings(BaseModel):
        """Database configuration."""

        url: str | None = Field(None, description="Full database URL")
        host: str = Field("localhost", description="Database host")
        port: int = Field(5432, description="Database port")
        database: str = Field("charity", description="Database name")
        username: str = Field("charity", description="Database username")
        password: str = Field("", description="Database password")

        # Connection pool
        pool_size: int = Field(10, description="Connection pool size")
        max_overflow: int = Field(20, description="Max overflow connections")
        pool_timeout: int = Field(30, description="Pool timeout in seconds")
        pool_recycle: int = Field(3600, description="Recycle connections after seconds")
        pool_pre_ping: bool = Field(True, description="Test connections before use")

        # Options
        echo: bool = Field(False, description="Echo SQL statements")

    database: DatabaseSettings = DatabaseSettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Observability configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or console)")
        enable_correlation_ids: bool = Field(True, description="Enable correlation IDs")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Visit Tickets
    # ============================================================

    class TicketSettings(BaseModel):
        """Visit-ticket lifecycle configuration."""

        service_minutes_per_position: int = Field(
            5, ge=1, description="Minutes of estimated wait per queue position"
        )
        expiry_grace_days: int = Field(
            1, ge=1, description="Days after the visit date at which a ticket expires"
        )
        ticket_number_prefix: str = Field("LDH", description="Prefix of issued ticket numbers")
        qr_prefix: str = Field("LDH-TICKET", description="Prefix of QR payloads")
        timezone: str = Field("UTC", description="Timezone that defines the service day")

        # Visitor instructions
        organization_name: str = Field("Lewisham Charity", description="Organisation name")
        location: str = Field("Lewisham Charity", description="Where visitors attend")
        contact_number: str = Field("+44 20 8692 0000", description="Visitor contact number")
        arrival_advice: str = Field(
            "Please arrive 15 minutes before your slot", description="Arrival advice"
        )

        @field_validator("timezone")
        @classmethod
        def validate_timezone(cls, v: str) -> str:
            """Reject unknown IANA zone names at load time."""
            try:
                ZoneInfo(v)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown timezone: {v}") from exc
            return v

    tickets: TicketSettings = TicketSettings()  # type: ignore[call-arg]

    # ============================================================
    # Notifications
    # ============================================================

    class NotificationSettings(BaseModel):
        """Visitor notification configuration."""

        enabled: bool = Field(True, description="Send visitor notifications")
        default_channel: str = Field("email", description="Default delivery channel")

    notifications: NotificationSettings = NotificationSettings()  # type: ignore[call-arg]

    # ============================================================
    # API
    # ============================================================

    class APISettings(BaseModel):
        """HTTP API configuration."""

        prefix: str = Field("/api/v1", description="Versioned API prefix")
        actor_header: str = Field("X-Actor-ID", description="Header naming the acting user")

    api: APISettings = APISettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    def validate_environment(cls, v: Any) -> Any:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing or self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
