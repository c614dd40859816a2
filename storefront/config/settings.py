"""
Application settings using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Prefer local overrides while keeping .env as the default source
        env_file=(".env.local", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = "dev"

    # MongoDB
    mongodb_uri: SecretStr = Field(..., description="MongoDB connection string")
    mongodb_database: str = "VWV"

    # Azure Storage (media store for product, popup and featured images)
    azure_storage_connection_string: SecretStr | None = None
    azure_storage_account_url: str | None = None
    azure_storage_container: str = "vwv-media"
    media_upload_timeout: int = Field(60, description="Seconds before a media upload is abandoned")

    # Token verification (tokens are issued by the external auth service)
    jwt_secret: SecretStr | None = None
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # Branches
    default_branches: list[str] = Field(default_factory=lambda: ["ghatpar", "mirpur"])

    # Uploads
    upload_max_files: int = Field(10, description="Max files per product upload call")
    upload_max_bytes_privileged: int = Field(10 * 1024 * 1024, description="Admin/moderator file ceiling")
    upload_max_bytes_default: int = Field(5 * 1024 * 1024, description="File ceiling for other roles")
    upload_calls_per_hour: int = Field(20, description="Upload calls per source address per hour")
    product_max_images: int = 10
    product_image_size: int = Field(800, description="Square edge of stored product images")
    media_quality: int = 85

    # Request rate limits (requests per minute, per source address and role)
    rate_limit_public: int = 100
    rate_limit_user: int = 200
    rate_limit_moderator: int = 500
    rate_limit_manager: int = 400
    rate_limit_admin: int = 1000

    # Order tracking lookups per minute (per source address)
    track_rate_limit_public: int = 10
    track_rate_limit_user: int = 20
    track_rate_limit_staff: int = 100

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"

    @property
    def is_development(self) -> bool:
        """Detailed error messages are only exposed in dev."""
        return self.environment == "dev"

    @property
    def mongodb_uri_str(self) -> str:
        """Get MongoDB URI as string."""
        return self.mongodb_uri.get_secret_value()

    @property
    def azure_connection_string_str(self) -> str | None:
        """Get Azure Storage connection string as string."""
        if self.azure_storage_connection_string:
            return self.azure_storage_connection_string.get_secret_value()
        return None

    @property
    def jwt_secret_str(self) -> str | None:
        """Get the token verification secret as string."""
        if self.jwt_secret:
            return self.jwt_secret.get_secret_value()
        return None

    def rate_limit_for(self, role: str) -> int:
        """Requests per minute allowed for a role."""
        limits = {
            "public": self.rate_limit_public,
            "user": self.rate_limit_user,
            "moderator": self.rate_limit_moderator,
            "manager": self.rate_limit_manager,
            "admin": self.rate_limit_admin,
        }
        return limits.get(role, self.rate_limit_public)

    def track_limit_for(self, role: str) -> int:
        """Tracking lookups per minute allowed for a role."""
        if role == "public":
            return self.track_rate_limit_public
        if role == "user":
            return self.track_rate_limit_user
        return self.track_rate_limit_staff


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
