# app/core/config.py
# All application settings loaded from environment variables / .env file
# In development: loaded from .env file via pydantic-settings

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for all Tutor Connect configuration.
    pydantic-settings automatically reads from environment variables.
    Variable names are case-insensitive.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_env: str = "development"
    app_name: str = "Tutor Connect"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Database
    database_url: str

    # Realtime change-feed
    # memory → in-process broker (single instance, tests)
    # redis  → Redis pub/sub (every API instance sees every commit)
    realtime_backend: str = "memory"
    realtime_channel_prefix: str = "tutor-connect:changes"
    redis_url: str = "redis://localhost:6379/0"

    # JWT (issued by the auth collaborator, only decoded here)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Request board
    request_feed_limit: int = 20

    # Engagements
    engagement_months: int = 1

    # Storage (public image URLs)
    storage_public_base_url: str = "https://storage.googleapis.com"
    student_images_bucket: str = "student_images"
    profile_images_bucket: str = "profile-pictures"
    placeholder_image_url: str = "/placeholder.png"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> List[str]:
        """Parse comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Returns a cached Settings instance.
    Use as a FastAPI dependency: settings = Depends(get_settings)
    Or import directly:         from app.core.config import settings
    """
    return Settings()


# Module-level singleton -- import this directly in most places
settings = get_settings()
