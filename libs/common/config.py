from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "test", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "America/Argentina/Buenos_Aires"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./clubcourts.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    JWT_SECRET: str = "local-jwt-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_TTL_MINUTES: int = 60 * 12

    # Seeded administrator (created on first provision only)
    ADMIN_EMAIL: str = "admin@clubcourts.com.ar"
    ADMIN_PHONE: str = "11-0000-0000"
    ADMIN_GOV_ID: str = "12345678"
    ADMIN_PASSWORD: str = "Admin-1234"

    # Booking config seed values. The live values are stored in the database
    # and edited by administrators.
    DEFAULT_REQUIRE_EMAIL_VALIDATION: bool = True
    DEFAULT_REQUIRE_PHONE_VALIDATION: bool = True
    DEFAULT_PRICE_MEMBER: int = 0
    DEFAULT_PRICE_NON_MEMBER: int = 8000
    DEFAULT_CURRENCY: str = "ARS"

    BOOKING_WINDOW_DAYS: int = 7
    OTP_TTL_SECONDS: int = 300
    GATEWAY_TIMEOUT_SECONDS: float = 30.0
    MEMBERSHIP_TIMEOUT_SECONDS: float = 10.0

    # External collaborators. Empty URLs select the in-process demo
    # implementations.
    MEMBERSHIP_SERVICE_URL: str = ""
    PAYMENT_GATEWAY_URL: str = ""
    PAYMENT_GATEWAY_API_KEY: str = ""
    NOTIFICATIONS_SERVICE_URL: str = ""
    NOTIFICATION_CHANNELS: list[str] = ["email", "whatsapp"]

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: str) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+asyncpg://", 1)
            if v.startswith("sqlite:///"):
                return v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
