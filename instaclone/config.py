"""Configuration management for the application."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(default="sqlite:///./instaclone.db")
    create_tables_on_startup: bool = Field(default=False)

    # JWT
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiration_minutes: int = Field(default=10080)  # 7 days

    # Passwords
    bcrypt_rounds: int = Field(default=12, ge=10, le=31)

    # One-time codes
    otp_expiry_minutes: int = Field(default=10, gt=0)
    otp_resend_cooldown_seconds: int = Field(default=60, ge=0)
    password_reset_expiry_minutes: int = Field(default=60, gt=0)

    # Brevo transactional email
    brevo_api_key: str | None = Field(default=None)
    brevo_api_url: str = Field(default="https://api.brevo.com/v3/smtp/email")
    brevo_sender_email: str = Field(default="noreply@instagramclone.com")
    brevo_sender_name: str = Field(default="Instagram Clone")
    mail_timeout_seconds: float = Field(default=10.0)

    # Google OAuth
    google_client_id: str | None = Field(default=None)
    google_client_secret: str | None = Field(default=None)
    google_callback_url: str = Field(default="http://localhost:5000/api/auth/google/callback")
    google_timeout_seconds: float = Field(default=10.0)

    # Frontend
    client_url: str = Field(default="http://localhost:3000")
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # API
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production has secure settings."""
        if self.environment == "production":
            if self.jwt_secret == "change-me-in-production":  # noqa: S105
                raise ValueError("JWT_SECRET must be changed in production")
            if self.database_url.startswith("sqlite"):
                raise ValueError("DATABASE_URL should not use SQLite in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def mail_configured(self) -> bool:
        return bool(self.brevo_api_key)

    @property
    def google_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
