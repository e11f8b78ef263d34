"""Application settings using Pydantic Settings for typed configuration.

This module centralizes all configuration and provides type-safe access to settings.
Settings are loaded from environment variables with sensible defaults; the
signing secret and database URL have no safe default and must be provided.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEVELOPMENT_ENVS = {"dev", "development", "local"}


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env_name: str = Field(default="development", alias="ENV_NAME")

    # Database
    database_url: str = Field(alias="DATABASE_URL")

    # Tokens
    jwt_secret: str = Field(alias="JWT_SECRET", min_length=32)
    jwt_issuer: str = Field(default="gatekeeper", alias="JWT_ISSUER")
    access_token_expires_days: int = Field(
        default=7, alias="ACCESS_TOKEN_EXPIRES_DAYS", ge=1, le=30
    )
    refresh_token_expires_days: int = Field(
        default=30, alias="REFRESH_TOKEN_EXPIRES_DAYS", ge=1, le=90
    )

    # Cookies
    session_cookie_name: str = Field(
        default="gatekeeper-session", alias="SESSION_COOKIE_NAME"
    )
    auth_cookie_secure: bool | None = Field(default=None, alias="AUTH_COOKIE_SECURE")
    auth_cookie_samesite: Literal["lax", "strict", "none"] = Field(
        default="lax", alias="AUTH_COOKIE_SAMESITE"
    )

    # OTP
    otp_expires_minutes: int = Field(default=10, alias="OTP_EXPIRES_MINUTES", ge=1)
    otp_max_attempts: int = Field(default=5, alias="OTP_MAX_ATTEMPTS", ge=1)

    # Rate limiting
    rate_limit_otp_per_hour: int = Field(
        default=5, alias="RATE_LIMIT_OTP_PER_HOUR", ge=1
    )
    rate_limit_login_per_hour: int = Field(
        default=10, alias="RATE_LIMIT_LOGIN_PER_HOUR", ge=1
    )
    rate_limit_api_requests: int = Field(
        default=100, alias="RATE_LIMIT_API_REQUESTS", ge=1
    )
    rate_limit_api_window_seconds: int = Field(
        default=900, alias="RATE_LIMIT_API_WINDOW_SECONDS", ge=1
    )

    # Maintenance
    sweep_interval_seconds: int = Field(
        default=300, alias="SWEEP_INTERVAL_SECONDS", ge=10
    )

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Email (Resend)
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    app_domain: str = Field(default="resend.dev", alias="APP_DOMAIN")
    client_url: str = Field(default="http://localhost:3000", alias="CLIENT_URL")

    # SMS gateway
    sms_api_url: str = Field(
        default="https://api.taqnyat.sa/v1/messages", alias="SMS_API_URL"
    )
    sms_api_key: str | None = Field(default=None, alias="SMS_API_KEY")
    sms_sender: str = Field(default="Gatekeeper", alias="SMS_SENDER")

    # Bootstrap
    super_admin_email: str = Field(
        default="admin@gatekeeper.app", alias="SUPER_ADMIN_EMAIL"
    )
    super_admin_name: str = Field(default="Super Admin", alias="SUPER_ADMIN_NAME")
    bootstrap_super_admin: bool = Field(default=True, alias="BOOTSTRAP_SUPER_ADMIN")

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        origins = []
        for o in self.cors_origins.split(","):
            trimmed = o.strip()
            if trimmed:
                origins.append(trimmed)
        return origins

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.env_name.lower() in _DEVELOPMENT_ENVS

    @computed_field
    @property
    def is_secure_cookie(self) -> bool:
        """Determine if cookies should be set with Secure flag.

        An explicit AUTH_COOKIE_SECURE wins; otherwise every non-development
        environment gets secure cookies.
        """
        if self.auth_cookie_secure is not None:
            return self.auth_cookie_secure
        return not self.is_development

    @computed_field
    @property
    def refresh_cookie_name(self) -> str:
        return f"{self.session_cookie_name}_refresh"

    @computed_field
    @property
    def access_token_expires_in(self) -> timedelta:
        return timedelta(days=self.access_token_expires_days)

    @computed_field
    @property
    def refresh_token_expires_in(self) -> timedelta:
        return timedelta(days=self.refresh_token_expires_days)

    @computed_field
    @property
    def otp_expires_in(self) -> timedelta:
        return timedelta(minutes=self.otp_expires_minutes)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
