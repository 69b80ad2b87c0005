"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, loaded from the environment or .env.
"""

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/example"
REQUIRED_SETTINGS = ("mongodb_uri", "jwt_secret")


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        environment: Runtime mode (any name, e.g. ``staging``). Only
            ``development`` exposes stack traces.
        debug: Enable interactive docs. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        api_prefix: Leading path segment stripped from error response paths.
        rate_limit_default: Default rate limit applied to every route.
        max_request_size_bytes: Maximum allowed request body size.

    Database and cache settings mirror the environment variables the
    deployment already provides (MONGODB_URI, REDIS_*).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    project_name: str = "Backend Starter"
    version: str = "0.1.0"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )
    debug: bool = False
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 3012
    api_prefix: str = "/api"
    cors_origins: list[str] = ["*"]
    trust_proxy: bool = True

    rate_limit_default: str = "60/minute"
    rate_limit_enabled: bool = True
    max_request_size_bytes: int = 20 * 1024 * 1024  # 20 MB
    compression_min_size: int = 512
    compression_level: int = 9

    mongodb_uri: Optional[str] = None
    jwt_secret: Optional[str] = None
    jwt_expire: Optional[str] = None
    refresh_token_expires_in: Optional[str] = None

    redis_host: str = "127.0.0.1"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 10

    shutdown_timeout_seconds: float = 10.0

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.strip().lower() or "development"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def missing_required(self) -> list[str]:
        """Return the environment variable names of unset required settings."""
        return [name.upper() for name in REQUIRED_SETTINGS if not getattr(self, name)]

    def get_mongodb_uri(self) -> str:
        """Return the effective MongoDB connection string."""
        return self.mongodb_uri or DEFAULT_MONGODB_URI


settings = Settings()
