"""Application configuration management using Pydantic Settings.

This module loads and validates environment variables using Pydantic Settings.
All configuration is loaded from environment variables or a .env file.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy connection string
        database_pool_size: Number of connections to maintain in pool
        database_max_overflow: Maximum overflow connections beyond pool_size
        environment: Application environment (development, staging, production)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        git_commit_sha: Git commit SHA reported by the root endpoint
        allowed_origins: Comma-separated list of allowed CORS origins
        api_prefix: Prefix for all form and draft routes
        max_questionnaire_length: Maximum questions accepted per submission
        max_answer_length: Maximum characters in a text answer
        submission_window_seconds: Trailing window for submission throttling
        submission_min_interval_seconds: Minimum gap between two attempts of one session
        max_session_attempts: Attempts per session allowed inside the window
        max_ip_submissions: Submissions per IP allowed inside the window
        trusted_proxies: Peers allowed to set the client IP via X-Forwarded-For
        rate_limit_window_seconds: Window for per-IP request throttling
        rate_limit_max_requests: Requests per IP and route inside that window
        submission_version: Version stamped into submission metadata
        submission_source: Source stamped into submission metadata
    """

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./easyform.db",
        description="SQLAlchemy connection string"
    )
    database_pool_size: int = Field(
        default=5,
        description="Number of database connections in pool"
    )
    database_max_overflow: int = Field(
        default=10,
        description="Maximum overflow connections beyond pool size"
    )

    # Application Configuration
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    git_commit_sha: str = Field(
        default="local",
        description="Git commit SHA for versioning"
    )
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )
    api_prefix: str = Field(
        default="/api/v1",
        description="Prefix for form and draft routes"
    )

    # Form Validation
    max_questionnaire_length: int = Field(
        default=50,
        ge=1,
        description="Maximum number of questions per submission"
    )
    max_answer_length: int = Field(
        default=1000,
        ge=1,
        description="Maximum length of a text answer"
    )

    # Submission Protection
    submission_window_seconds: int = Field(
        default=300,
        ge=1,
        description="Trailing window used by the submission guard"
    )
    submission_min_interval_seconds: int = Field(
        default=30,
        ge=0,
        description="Minimum seconds between attempts from one session"
    )
    max_session_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum attempts per session inside the window"
    )
    max_ip_submissions: int = Field(
        default=10,
        ge=1,
        description="Maximum submissions per IP inside the window"
    )

    # Request Throttling
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy addresses whose X-Forwarded-For header is honored"
    )
    rate_limit_window_seconds: int = Field(
        default=900,
        ge=1,
        description="Window for per-IP request throttling on form and draft routes"
    )
    rate_limit_max_requests: int = Field(
        default=100,
        ge=1,
        description="Requests per IP and route allowed inside the throttling window"
    )

    # Submission Metadata
    submission_version: str = Field(
        default="1.0.0",
        description="Version recorded in submission metadata"
    )
    submission_source: str = Field(
        default="easyform-frontend",
        description="Source recorded in submission metadata"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed_origins string into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def get_trusted_proxies_list(self) -> List[str]:
        """Parse trusted_proxies string into a list."""
        return [proxy.strip() for proxy in self.trusted_proxies.split(",") if proxy.strip()]

    def get_rate_limit(self) -> str:
        """Request throttle in the ``limits`` notation used by slowapi."""
        return f"{self.rate_limit_max_requests} per {self.rate_limit_window_seconds} seconds"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton

    Note:
        Uses lru_cache to ensure settings are only loaded once
        and shared across the application.
    """
    return Settings()
