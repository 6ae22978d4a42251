"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)
    # Bounds connect, statement execution and pool checkout
    db_timeout_seconds: float = Field(default=10.0, gt=0)

    # Access/refresh credentials
    jwt_secret: str = Field(min_length=32)
    access_token_ttl_minutes: int = Field(default=30, ge=1, le=30)
    refresh_token_ttl_days: int = Field(default=30, ge=1)

    # Discord OAuth2
    discord_client_id: str = ""
    discord_client_secret: str = ""
    discord_api_endpoint: str = "https://discord.com/api/v10"
    oauth_redirect_uri: str = "http://localhost:8080/auth/callback"
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    secure_cookies: bool = True

    # Custom URL scheme the desktop app registers (e.g. gale://auth/callback)
    desktop_scheme: str = Field(default="gale", pattern=r"^[a-z][a-z0-9+.-]*$")

    # Profile archive storage (S3-compatible)
    s3_bucket: str = ""
    s3_region: str | None = None
    s3_endpoint: str | None = None
    storage_public_url: str | None = Field(
        default=None,
        description="CDN base URL for archive redirects. Presigned URLs are used when unset.",
    )
    storage_timeout_seconds: float = Field(default=10.0, gt=0)

    max_profile_size: int = Field(default=2 * 1024 * 1024, ge=1)

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(default="", validation_alias="CORS_ORIGINS")

    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_redirect_uri(self) -> "Settings":
        """
        Require HTTPS for the OAuth redirect URI unless it points at localhost.

        Authorization codes travel on this URI, so a plain-HTTP production callback
        would leak them to anyone on the network path.
        """
        parsed = urlparse(self.oauth_redirect_uri)
        hostname = (parsed.hostname or "").lower()
        local_hosts = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
        if parsed.scheme != "https" and hostname not in local_hosts:
            raise ValueError(
                f"OAUTH_REDIRECT_URI must use https for non-local hosts, got "
                f"'{self.oauth_redirect_uri}'.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (local runs and tests)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
