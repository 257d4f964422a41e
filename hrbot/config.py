"""
Configuration module for the HR Onboarding Bot.
Loads environment variables and provides settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Bot configuration
    BOT_TOKEN: str = Field(default="", description="Telegram Bot Token")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # HR REST API
    API_BASE_URL: str = Field(
        default="",
        description="Base URL of the HR REST API (no trailing slash)"
    )

    # Local key-value storage
    DB_URL: str = Field(
        default="sqlite+aiosqlite:///./hrbot.db",
        description="Database connection URL for the per-user key-value store"
    )

    # Timezone
    TIMEZONE: str = Field(
        default="Asia/Kolkata",
        description="Timezone for date/time operations"
    )

    # Celebration notifications
    NOTIFICATION_HOUR: int = Field(
        default=9,
        description="Hour of day to send birthday/anniversary notifications"
    )

    # Auth rules
    EMAIL_DOMAIN: str = Field(
        default="liftoffllc.com",
        description="Company email domain accepted at login/signup"
    )

    # Uploads
    MAX_UPLOAD_BYTES: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum size of an uploaded onboarding document"
    )

    # Directory
    CONTACTS_PAGE_SIZE: int = Field(
        default=10,
        description="Page size for the employee directory and dashboard"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()
