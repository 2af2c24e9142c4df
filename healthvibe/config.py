"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Used to build links that go out by email (reset links)
    public_base_url: str = "http://localhost:3000"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    session_token_expire_days: int = 7
    session_cookie_name: str = "authToken"

    # PBKDF2 work factor, tuned for tens of milliseconds per verify
    password_hash_iterations: int = 310_000
    password_min_length: int = 6

    # Two-factor (TOTP)
    totp_issuer: str = "HealthVibe"
    totp_interval_seconds: int = 30
    totp_valid_window: int = 1

    # Password reset
    reset_token_expire_minutes: int = 60

    # When False, /forgot-password answers unknown emails like known ones
    disclose_unknown_accounts: bool = False
    # Completing a reset logs out every existing session
    reset_revokes_sessions: bool = True

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================

    login_rate_limit: str = "5 per 15 minutes"
    login_rate_limit_message: str = (
        "Too many login attempts from this IP, please try again after 15 minutes"
    )

    # ==========================================================================
    # AWS (email delivery via SES)
    # ==========================================================================

    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_ses_from_email: str = ""
    mail_timeout_seconds: float = 10.0

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_aws(self) -> bool:
        """Whether AWS services should be used."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
