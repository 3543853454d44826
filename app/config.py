"""
Tandem — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "default-secret-change-in-production"


class Settings(BaseSettings):
    """Central configuration for the Tandem backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database – Cloud SQL via Unix socket or plain DATABASE_URL
    # ------------------------------------------------------------------ #
    DATABASE_URL: str
    DB_USER: str = "tandem_user"
    DB_PASSWORD: str = ""
    DB_NAME: str = "tandem"
    CLOUD_SQL_INSTANCE_CONNECTION: str = ""
    CLOUD_SQL_USE_UNIX_SOCKET: bool = False

    # ------------------------------------------------------------------ #
    # MongoDB – chat message log
    # ------------------------------------------------------------------ #
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGO_DATABASE: str = "tandem"
    MONGO_MESSAGES_COLLECTION: str = "messages"

    # Upper bound for any single storage round-trip (seconds)
    STORAGE_TIMEOUT_SECONDS: float = 5.0

    # ------------------------------------------------------------------ #
    # Security
    # ------------------------------------------------------------------ #
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_HOURS: int = 24

    # ------------------------------------------------------------------ #
    # Avatars – local disk by default, GCS when a bucket is configured
    # ------------------------------------------------------------------ #
    AVATAR_STORAGE_DIR: str = "storage/avatars"
    AVATAR_URL_PREFIX: str = "/avatars"
    AVATAR_MAX_BYTES: int = 5 * 1024 * 1024
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""

    # ------------------------------------------------------------------ #
    # Chat
    # ------------------------------------------------------------------ #
    MESSAGE_MAX_LENGTH: int = 2000

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "http://localhost:5174"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator("AVATAR_URL_PREFIX")
    @classmethod
    def _prefix_must_be_absolute(cls, v: str) -> str:
        v = v.strip() or "/avatars"
        if not v.startswith("/"):
            v = "/" + v
        v = v.rstrip("/")
        # Mounted ahead of the API router; "/" would shadow every route.
        if not v or v == "/api" or v.startswith("/api/"):
            raise ValueError("AVATAR_URL_PREFIX must be a sub-path such as /avatars")
        return v

    @field_validator("STORAGE_TIMEOUT_SECONDS", "REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def _production_requires_secret(self) -> "Settings":
        if self.is_production and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set in production")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
