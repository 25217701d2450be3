"""Configuration management for the newsletter schedule engine."""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApplicationConfig(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="NEWSLETTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///newsletter.db",
        description="Database connection URL"
    )

    # Mail transport
    resend_api_key: str = Field(
        default="",
        description="Resend API key for email delivery"
    )
    resend_api_url: str = Field(
        default="https://api.resend.com/emails",
        description="Resend send-email endpoint"
    )

    # Domain Settings
    domain: str = Field(
        default="",
        description="Domain name for email addresses (leave empty to use Resend test email)"
    )

    # Email Settings
    from_email: str = Field(
        default="",
        description="From email address for newsletters (auto-configured based on domain)"
    )
    from_name: str = Field(
        default="Newsletter",
        description="From name for newsletters"
    )
    preferences_url: str = Field(
        default="",
        description="Link to the subscription settings page shown in the email footer"
    )

    # Trigger endpoints
    api_shared_secret: str = Field(
        default="",
        description="Shared secret expected in the x-api-key header of trigger endpoints"
    )
    api_host: str = Field(default="127.0.0.1", description="HTTP bind address")
    api_port: int = Field(default=8000, description="HTTP bind port")

    # Content
    content_items_per_topic: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of newest content items rendered per topic"
    )
    collection_interval_hours: float = Field(
        default=24.0,
        gt=0,
        description="Spacing of planned content collections before a delivery"
    )
    max_items_per_collection_topic: int = Field(
        default=5,
        ge=1,
        description="Items requested from the collector per topic"
    )
    collector_url: str = Field(
        default="",
        description="Content collection service endpoint (empty disables collection)"
    )
    collector_api_key: str = Field(
        default="",
        description="API key sent to the content collection service"
    )

    # Timeouts
    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )
    transport_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on a single mail transport call in seconds"
    )
    collector_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound on a single content collection call in seconds"
    )
    dispatch_lease_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Age after which an unfinished send claim may be taken over"
    )

    # Scheduling
    schedule_timezone: str = Field(
        default="UTC",
        description="Zone in which frequency steps are computed"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="structured",
        description="Log format: structured or text"
    )
    log_to_file: bool = Field(
        default=True,
        description="Also write logs to logs/scheduler.log"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        if v not in ("structured", "text"):
            raise ValueError("log_format must be 'structured' or 'text'")
        return v

    @field_validator("schedule_timezone")
    @classmethod
    def validate_timezone(cls, v):
        """Validate that the timezone exists in the zone database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def newsletter_from_email(self) -> str:
        """Generate from email using the configured domain or fallback to Resend test email."""
        if self.from_email:
            return self.from_email
        elif self.domain and self.domain != "yourdomain.com":
            return f"newsletter@{self.domain}"
        else:
            # Resend's shared sender, only usable in development
            return "onboarding@resend.dev"

    @property
    def is_using_test_email(self) -> bool:
        """Check if using test email address."""
        return self.newsletter_from_email == "onboarding@resend.dev"

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver selected."""
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


def load_config() -> ApplicationConfig:
    """Load application configuration from environment and files."""
    return ApplicationConfig()


def get_package_root() -> Path:
    """Get the package directory."""
    return Path(__file__).parent.parent


def get_project_root() -> Path:
    """Get the project root directory."""
    return get_package_root().parent


def get_templates_dir() -> Path:
    """Get the templates directory."""
    return get_package_root() / "templates"


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_project_root() / "logs"
    logs_dir.mkdir(exist_ok=True)
    return logs_dir
